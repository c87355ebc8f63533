import argparse
import json
import logging
import os
import signal
import sys

from colorama import Fore, Style, init

from gauntlet import __version__
from gauntlet.config import load_config
from gauntlet.engine import Orchestrator
from gauntlet.errors import ConfigurationError
from gauntlet.models import Suite
from gauntlet.reporting import ConsoleReporter, generate_json_report

USAGE = """\
GAUNTLET // resilience and security harness for HTTP APIs

Commands:
  quick      authentication + connectivity smoke check
  stress     authentication + load (rate limiting, burst, throughput, packet loss)
  security   authentication + payload campaigns
  auth       authentication checks only
  full       authentication + load + security (default)
  config     print the resolved configuration
  help       show this message

Run only against development or staging targets you are allowed to test.
"""


def signal_handler(sig, frame):
    print("\n[!] Interrupted (Ctrl+C), stopping...")
    sys.stdout.flush()
    os._exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gauntlet",
        description=USAGE,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("-v", "--version", action="version", version=f"GAUNTLET v{__version__}")
    parser.add_argument("command", nargs="?", default="full",
                        choices=[s.value for s in Suite] + ["help", "config"])

    target_group = parser.add_argument_group("Targeting")
    target_group.add_argument("--base-url", help="Target URL (e.g., http://localhost:3000)")
    target_group.add_argument("--config", help="Path to a YAML file overriding the defaults")

    out_group = parser.add_argument_group("Reporting")
    out_group.add_argument("--json-report", help="Path to JSON output")
    out_group.add_argument("--verbose", action="store_true", help="Log every probe")
    return parser


def main(argv=None) -> int:
    init(autoreset=True)
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    if args.command == "help":
        parser.print_help()
        return 0

    overrides = {"server": {"base_url": args.base_url}} if args.base_url else None
    try:
        config = load_config(args.config, overrides=overrides)
    except ConfigurationError as e:
        print(f"{Fore.RED}[!] Configuration error: {e}{Style.RESET_ALL}")
        return 1

    if args.command == "config":
        print(json.dumps(config.to_dict(mask_secrets=True), indent=2))
        return 0

    signal.signal(signal.SIGINT, signal_handler)

    suite = Suite(args.command)
    print(f"[*] TARGET: {config.server.base_url}")
    print(f"[*] SUITE: {suite.value} ({', '.join(p.value for p in suite.phases)})")

    report = Orchestrator(config).run(suite)

    ConsoleReporter().print_summary(report)
    if args.json_report:
        generate_json_report(report, args.json_report)

    if report.success:
        print(f"\n{Fore.GREEN}[+] Run completed.{Style.RESET_ALL}")
        return 0
    print(f"\n{Fore.RED}[-] Run failed: {report.error}{Style.RESET_ALL}")
    return 1


if __name__ == "__main__":
    sys.exit(main())

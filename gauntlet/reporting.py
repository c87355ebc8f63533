import json
from typing import Any, Dict

from colorama import Fore, Style, init

from .models import Classification, FinalReport, PhaseResult

init()

CLASSIFICATION_COLORS = {
    Classification.EXCELLENT: Fore.GREEN,
    Classification.GOOD: Fore.GREEN,
    Classification.AVERAGE: Fore.YELLOW,
    Classification.POOR: Fore.RED,
    Classification.CRITICAL: Fore.RED,
}


def _score_color(score: int) -> str:
    if score >= 75:
        return Fore.GREEN
    if score >= 60:
        return Fore.YELLOW
    return Fore.RED


class ConsoleReporter:
    def print_summary(self, report: FinalReport):
        print(f"\n{Style.BRIGHT}=== GAUNTLET REPORT ({report.suite.value}) ==={Style.RESET_ALL}\n")

        for name, result in report.phase_results.items():
            color = _score_color(result.score)
            print(f"[{color}{result.score:>3}/100{Style.RESET_ALL}] {name} "
                  f"(tested {result.tested}, flagged {result.flagged})")
            self._print_components(result)
            for finding in result.details:
                print(f"      {Fore.YELLOW}- {finding.category.value} @ {finding.endpoint}: "
                      f"{finding.evidence_kind.value} [{finding.payload_excerpt}]{Style.RESET_ALL}")

        if report.error:
            print(f"\n{Fore.RED}Error: {report.error}{Style.RESET_ALL}")

        color = CLASSIFICATION_COLORS[report.classification]
        duration = (report.finished_at - report.started_at).total_seconds()
        print(f"\n{Style.BRIGHT}Composite Score: {color}{report.composite_score}/100 "
              f"({report.classification.value}){Style.RESET_ALL}")
        print(f"State: {report.state.value} | Duration: {duration:.1f}s")

        if report.recommendations:
            print(f"\n{Style.BRIGHT}Recommendations:{Style.RESET_ALL}")
            for rec in report.recommendations:
                print(f"  - {rec}")

    def _print_components(self, result: PhaseResult):
        for name, component in result.components.items():
            metrics = component.metrics
            if "working" in metrics:
                state = f"{Fore.GREEN}active" if metrics["working"] else f"{Fore.RED}not detected"
                extra = f"rate limiting {state}{Style.RESET_ALL}"
            elif metrics.get("scored") is False:
                extra = "informational"
            else:
                extra = f"{component.score} pts, flagged {component.flagged}/{component.tested}"
            print(f"      {name}: {extra}")


def generate_json_report(report: FinalReport, output_path: str) -> bool:
    """Writes this run's report as JSON. Not a run history."""
    data: Dict[str, Any] = report.to_dict()
    try:
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)
        print(f"\nJSON Report written to: {output_path}")
        return True
    except OSError as e:
        print(f"{Fore.RED}Failed to write JSON report: {e}{Style.RESET_ALL}")
        return False

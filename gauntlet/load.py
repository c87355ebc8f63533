import logging
import time
from typing import Dict, List, Optional

from .config import HarnessConfig
from .errors import SessionError
from .http_client import ProbeDispatcher
from .models import (
    ConcurrencyMode,
    NetworkError,
    PhaseResult,
    ProbeOutcome,
    ProbeRequest,
    ServerError,
    Session,
    Success,
    Timeout,
)
from .scoring import (
    concurrency_points,
    load_score,
    packet_loss_points,
    rate_limit_points,
    throughput_points,
)
from .throttler import paced, pause

logger = logging.getLogger("gauntlet.load")

# Extra probes on top of the authenticated limit, before the cap applies
AUTH_RATE_LIMIT_OVERSHOOT = 50


def _latencies(outcomes: List[ProbeOutcome]) -> List[float]:
    return [o.latency_ms for o in outcomes if isinstance(o, (Success, ServerError, Timeout))]


def _latency_stats(latencies: List[float]) -> Dict[str, Optional[float]]:
    if not latencies:
        return {"avg_ms": None, "min_ms": None, "max_ms": None}
    return {
        "avg_ms": round(sum(latencies) / len(latencies), 1),
        "min_ms": round(min(latencies), 1),
        "max_ms": round(max(latencies), 1),
    }


class LoadAssessor:
    """
    Resilience sub-assessments. Each one is independently invokable and
    returns its own PhaseResult; run_all() combines them into the load phase.
    """

    def __init__(self, dispatcher: ProbeDispatcher, config: HarnessConfig,
                 session: Optional[Session] = None, clock=time.perf_counter, sleep=time.sleep):
        self.dispatcher = dispatcher
        self.config = config
        self.session = session
        self.clock = clock
        self.sleep = sleep

    def _get(self, path: str, headers=None, timeout_ms: Optional[int] = None) -> ProbeRequest:
        return ProbeRequest(method="GET", path=path, headers=headers or {},
                            timeout_ms=timeout_ms or self.config.server.timeout_ms)

    def rate_limit_public(self) -> PhaseResult:
        limits = self.config.rate_limit
        total = limits.public_limit + limits.margin
        probes = [self._get(self.config.endpoints.health) for _ in range(total)]
        outcomes = self.dispatcher.dispatch_batch(probes, mode=ConcurrencyMode.CONCURRENT)

        blocked = sum(1 for o in outcomes if isinstance(o, Success) and o.status == 429)
        # Non-blocked responses may overshoot the limit by at most `tolerance`
        working = blocked > 0 and blocked >= total - limits.public_limit - limits.tolerance
        logger.info("Public rate limit: %d/%d blocked, working=%s", blocked, total, working)

        return PhaseResult(
            name="rate_limit_public",
            tested=len(outcomes),
            flagged=blocked,
            score=rate_limit_points(working),
            metrics={
                "total": len(outcomes),
                "blocked": blocked,
                "allowed": len(outcomes) - blocked,
                "limit": limits.public_limit,
                "working": working,
            },
        )

    def rate_limit_authenticated(self) -> PhaseResult:
        """Authenticated traffic must get through beyond the public limit."""
        if self.session is None or not self.session.authenticated:
            raise SessionError("Authenticated rate-limit check needs an established session")
        limits = self.config.rate_limit
        total = min(limits.auth_limit + AUTH_RATE_LIMIT_OVERSHOOT, limits.auth_cap)
        headers = self.session.auth_headers()
        probes = [self._get(self.config.endpoints.protected, headers=headers) for _ in range(total)]
        outcomes = self.dispatcher.dispatch_batch(probes, mode=ConcurrencyMode.CONCURRENT)

        successful = sum(1 for o in outcomes if isinstance(o, Success) and o.status < 300)
        blocked = sum(1 for o in outcomes if isinstance(o, Success) and o.status == 429)
        working = successful > limits.public_limit
        logger.info("Authenticated rate limit: %d/%d allowed, %d blocked, working=%s",
                    successful, total, blocked, working)

        return PhaseResult(
            name="rate_limit_authenticated",
            tested=len(outcomes),
            flagged=blocked,
            score=rate_limit_points(working),
            metrics={
                "total": len(outcomes),
                "successful": successful,
                "blocked": blocked,
                "limit": limits.auth_limit,
                "working": working,
            },
        )

    def concurrency_burst(self) -> PhaseResult:
        size = self.config.stress.burst_size
        probes = [self._get(self.config.endpoints.health) for _ in range(size)]
        start = self.clock()
        outcomes = self.dispatcher.dispatch_batch(probes, mode=ConcurrencyMode.CONCURRENT)
        duration_ms = (self.clock() - start) * 1000.0

        successful = sum(1 for o in outcomes if o.ok)
        failed = len(outcomes) - successful
        success_rate = 100.0 * successful / len(outcomes) if outcomes else 0.0
        stats = _latency_stats(_latencies(outcomes))
        score = concurrency_points(success_rate, stats["avg_ms"])
        logger.info("Concurrency burst: %d/%d ok (%.1f%%), avg %s ms",
                    successful, len(outcomes), success_rate, stats["avg_ms"])

        return PhaseResult(
            name="concurrency",
            tested=len(outcomes),
            flagged=failed,
            score=score,
            metrics=dict(stats, total=len(outcomes), successful=successful, failed=failed,
                         success_rate=round(success_rate, 2), duration_ms=round(duration_ms, 1)),
        )

    def throughput(self) -> PhaseResult:
        stress = self.config.stress
        probes = (self._get(self.config.endpoints.root) for _ in range(stress.iterations))

        outcomes = []
        start = self.clock()
        for probe in paced(probes, every=stress.pacing_every, delay_ms=stress.pacing_ms, sleep=self.sleep):
            outcomes.append(self.dispatcher.dispatch(probe))
        duration_s = self.clock() - start

        successful = sum(1 for o in outcomes if o.ok)
        rps = successful / max(duration_s, 1e-6)
        logger.info("Throughput: %d/%d ok in %.2fs (%.2f req/s)",
                    successful, len(outcomes), duration_s, rps)

        return PhaseResult(
            name="throughput",
            tested=len(outcomes),
            flagged=len(outcomes) - successful,
            score=throughput_points(rps),
            metrics=dict(_latency_stats(_latencies(outcomes)), total=len(outcomes),
                         successful=successful, duration_s=round(duration_s, 3),
                         requests_per_second=round(rps, 2)),
        )

    def packet_loss(self) -> PhaseResult:
        stress = self.config.stress
        probes = [self._get(self.config.endpoints.health, timeout_ms=stress.packet_loss_timeout_ms)
                  for _ in range(stress.packet_loss_samples)]
        outcomes = self.dispatcher.dispatch_batch(probes, mode=ConcurrencyMode.CONCURRENT)

        counts = {"success": 0, "client_errors": 0, "timeouts": 0, "network_errors": 0, "server_errors": 0}
        for outcome in outcomes:
            if isinstance(outcome, Timeout):
                counts["timeouts"] += 1
            elif isinstance(outcome, NetworkError):
                counts["network_errors"] += 1
            elif isinstance(outcome, ServerError):
                counts["server_errors"] += 1
            elif outcome.ok:
                counts["success"] += 1
            else:
                counts["client_errors"] += 1

        lost = counts["timeouts"] + counts["network_errors"]
        loss_rate = 100.0 * lost / len(outcomes) if outcomes else 0.0
        logger.info("Packet loss: %d/%d lost (%.2f%%)", lost, len(outcomes), loss_rate)

        return PhaseResult(
            name="packet_loss",
            tested=len(outcomes),
            flagged=lost,
            score=packet_loss_points(loss_rate),
            metrics=dict(counts, total=len(outcomes), lost=lost, loss_rate=round(loss_rate, 2)),
        )

    def response_time_profile(self) -> PhaseResult:
        """Informational: sequential latency samples per endpoint, unscored."""
        stress = self.config.stress
        endpoints = self.config.endpoints
        timeout_ms = self.config.server.timeout_ms
        samples = {
            endpoints.root: self._get(endpoints.root),
            endpoints.health: self._get(endpoints.health),
            endpoints.login: ProbeRequest(
                method="POST", path=endpoints.login, timeout_ms=timeout_ms,
                body={"identifier": "test@example.com", "password": "wrongpassword"},
            ),
        }

        profile = {}
        tested = 0
        for path, probe in samples.items():
            outcomes = self.dispatcher.dispatch_batch(
                [probe] * stress.response_time_samples,
                mode=ConcurrencyMode.SEQUENTIAL,
                pacing_ms=stress.response_time_delay_ms,
            )
            tested += len(outcomes)
            times = sorted(_latencies(outcomes))
            if not times:
                profile[path] = {"avg_ms": None, "min_ms": None, "max_ms": None, "median_ms": None}
                continue
            profile[path] = dict(_latency_stats(times), median_ms=round(times[len(times) // 2], 1))

        return PhaseResult(name="response_time", tested=tested, flagged=0, score=0,
                           metrics={"endpoints": profile, "scored": False})

    def run_all(self) -> PhaseResult:
        """
        Load phase: the two rate-limit checks separated by a cool-down, then
        the performance checks separated by a settle pause.
        """
        cooldown = self.config.rate_limit.cooldown_ms
        settle = self.config.stress.settle_ms

        components = {}
        components["rate_limit_public"] = self.rate_limit_public()
        pause(cooldown, sleep=self.sleep)
        components["rate_limit_authenticated"] = self.rate_limit_authenticated()
        pause(cooldown, sleep=self.sleep)
        components["concurrency"] = self.concurrency_burst()
        pause(settle, sleep=self.sleep)
        components["throughput"] = self.throughput()
        pause(settle, sleep=self.sleep)
        components["response_time"] = self.response_time_profile()
        pause(settle, sleep=self.sleep)
        components["packet_loss"] = self.packet_loss()

        score = load_score(components)
        logger.info("Load score: %d/100", score)
        return PhaseResult(
            name="load",
            tested=sum(r.tested for r in components.values()),
            flagged=sum(r.flagged for r in components.values()),
            score=score,
            components=components,
        )

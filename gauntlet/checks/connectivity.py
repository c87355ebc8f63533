import logging

from ..config import HarnessConfig
from ..http_client import ProbeDispatcher
from ..models import ConcurrencyMode, PhaseResult, ProbeRequest, ServerError, Success

logger = logging.getLogger("gauntlet.checks.connectivity")

ALIVE_POINTS = 50
AUTH_PROTECTION_POINTS = 50
PROBE_TIMEOUT_MS = 5000
FOREIGN_ORIGIN = "http://evil.com"
BURST_SIZE = 10


def run_connectivity_check(dispatcher: ProbeDispatcher, config: HarnessConfig) -> PhaseResult:
    """
    Quick smoke check of a target.

    Scored: at least one of root/health/login answers below 500, and the
    protected route refuses a request without a token. Recorded only: whether
    CORS echoes a foreign origin, and whether a short burst draws a 429.
    """
    endpoints = config.endpoints
    paths = [endpoints.root, endpoints.health, endpoints.login]
    outcomes = dispatcher.dispatch_batch(
        [ProbeRequest(method="GET", path=p, timeout_ms=PROBE_TIMEOUT_MS) for p in paths],
        mode=ConcurrencyMode.SEQUENTIAL,
    )
    reachable = {}
    for path, outcome in zip(paths, outcomes):
        reachable[path] = isinstance(outcome, Success)
        status = outcome.status if isinstance(outcome, (Success, ServerError)) else outcome.kind.value
        logger.info("GET %s -> %s", path, status)
    alive = any(reachable.values())

    anonymous = dispatcher.dispatch(ProbeRequest(method="GET", path=endpoints.protected,
                                                 timeout_ms=config.server.timeout_ms))
    auth_protected = isinstance(anonymous, Success) and anonymous.status in (401, 403)

    cors = dispatcher.dispatch(ProbeRequest(method="GET", path=endpoints.root,
                                            headers={"Origin": FOREIGN_ORIGIN},
                                            timeout_ms=config.server.timeout_ms))
    cors_enabled = isinstance(cors, Success) and "access-control-allow-origin" in cors.headers

    burst = dispatcher.dispatch_batch(
        [ProbeRequest(method="GET", path=endpoints.health, timeout_ms=config.server.timeout_ms)
         for _ in range(BURST_SIZE)],
        mode=ConcurrencyMode.CONCURRENT,
    )
    rate_protected = any(isinstance(o, Success) and o.status == 429 for o in burst)

    checks = {"alive": alive, "auth_protected": auth_protected}
    score = (ALIVE_POINTS if alive else 0) + (AUTH_PROTECTION_POINTS if auth_protected else 0)
    if not alive:
        logger.warning("No endpoint of %s answered below 500", dispatcher.base_url)

    return PhaseResult(
        name="connectivity",
        tested=len(checks),
        flagged=sum(1 for ok in checks.values() if not ok),
        score=score,
        metrics={
            "reachable": reachable,
            "checks": checks,
            "cors_enabled": cors_enabled,
            "rate_protected": rate_protected,
        },
    )

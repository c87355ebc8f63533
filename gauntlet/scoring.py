"""
Score aggregation: bucket tables for the load sub-assessments, fixed
deductions for security campaigns and the run-level composite.
Every public function returns an int clamped to [0, 100].
"""
import math
from typing import Iterable, Mapping, Optional, Sequence, Tuple

from .models import Category, Classification, PhaseResult

RATE_LIMIT_POINTS = 15

# (lower bound, points), checked top-down
SUCCESS_RATE_BUCKETS: Sequence[Tuple[float, int]] = ((95, 20), (90, 15), (80, 10), (70, 5))
THROUGHPUT_BUCKETS: Sequence[Tuple[float, int]] = ((50, 10), (30, 7), (20, 5), (10, 3))
# (upper bound, points)
LATENCY_BUCKETS: Sequence[Tuple[float, int]] = ((500, 10), (1000, 7), (2000, 5), (5000, 2))
PACKET_LOSS_BUCKETS: Sequence[Tuple[float, int]] = ((1, 20), (3, 15), (5, 10), (10, 5))

SECURITY_DEDUCTIONS = {
    Category.SQLI: 20,
    Category.XSS: 15,
    Category.PATH_TRAVERSAL: 15,
    Category.BRUTE_FORCE: 25,  # a guessed password is critical
    Category.JWT_BYPASS: 20,
    Category.HEADER_INJECTION: 10,
    Category.AUTHENTICATED_ROUTES: 15,
}
BRUTE_FORCE_RATE_LIMIT_BONUS = 5

LOAD_COMPONENTS = (
    "rate_limit_public",
    "rate_limit_authenticated",
    "concurrency",
    "throughput",
    "packet_loss",
)

CLASSIFICATION_THRESHOLDS: Sequence[Tuple[int, Classification]] = (
    (90, Classification.EXCELLENT),
    (75, Classification.GOOD),
    (60, Classification.AVERAGE),
    (40, Classification.POOR),
)


def clamp(value: float, low: int = 0, high: int = 100) -> int:
    return int(max(low, min(high, value)))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _at_least(value: float, buckets: Iterable[Tuple[float, int]]) -> int:
    for bound, points in buckets:
        if value >= bound:
            return points
    return 0


def _below(value: float, buckets: Iterable[Tuple[float, int]], inclusive: bool = False) -> int:
    for bound, points in buckets:
        if value < bound or (inclusive and value == bound):
            return points
    return 0


def rate_limit_points(working: bool) -> int:
    return RATE_LIMIT_POINTS if working else 0


def concurrency_points(success_rate_pct: float, avg_latency_ms: Optional[float]) -> int:
    points = _at_least(success_rate_pct, SUCCESS_RATE_BUCKETS)
    if avg_latency_ms is not None:
        points += _below(avg_latency_ms, LATENCY_BUCKETS)
    return points


def throughput_points(requests_per_second: float) -> int:
    return _at_least(requests_per_second, THROUGHPUT_BUCKETS)


def packet_loss_points(loss_rate_pct: float) -> int:
    return _below(loss_rate_pct, PACKET_LOSS_BUCKETS, inclusive=True)


def load_score(components: Mapping[str, PhaseResult]) -> int:
    """Sum of the scored sub-assessments (90 nominal max), clamped."""
    return clamp(sum(components[name].score for name in LOAD_COMPONENTS if name in components))


def security_score(campaigns: Mapping[Category, PhaseResult]) -> int:
    score = 100
    for category, result in campaigns.items():
        if result.flagged > 0:
            score -= SECURITY_DEDUCTIONS.get(category, 0)

    brute = campaigns.get(Category.BRUTE_FORCE)
    if brute is not None and brute.metrics.get("rate_limited", 0) > 0:
        score += BRUTE_FORCE_RATE_LIMIT_BONUS
    return clamp(score)


def campaign_score(tested: int, flagged: int) -> int:
    """Share of cases that were handled safely."""
    if tested == 0:
        return 100
    return clamp(round_half_up(100 * (tested - flagged) / tested))


def composite_score(phase_scores: Iterable[int]) -> int:
    """Mean of the phases that completed. No completed phase gives 0."""
    scores = list(phase_scores)
    if not scores:
        return 0
    return clamp(round_half_up(sum(scores) / len(scores)))


def classify(score: int) -> Classification:
    for threshold, label in CLASSIFICATION_THRESHOLDS:
        if score >= threshold:
            return label
    return Classification.CRITICAL


def recommendations(phase_results: Mapping[str, PhaseResult], composite: int) -> list:
    recs = []
    if composite >= 80:
        recs.append("Target is well configured; keep monitoring and re-run after changes.")
        return recs

    auth = phase_results.get("authentication")
    if auth is not None and auth.score < 80:
        recs.append("Strengthen authentication: invalid credentials and anonymous access must be rejected.")
    load = phase_results.get("load")
    if load is not None and load.score < 70:
        recs.append("Tune performance and rate limiting for public and authenticated traffic.")
    security = phase_results.get("security")
    if security is not None:
        flagged = {name for name, res in security.components.items() if res.flagged > 0}
        if "sql_injection" in flagged:
            recs.append("Use parameterized queries and stop leaking database errors.")
        if "xss" in flagged or "authenticated_routes" in flagged:
            recs.append("Validate and escape user-supplied text before storing or echoing it.")
        if "path_traversal" in flagged:
            recs.append("Normalize and confine file paths derived from request input.")
        if "jwt_bypass" in flagged:
            recs.append("Verify token signature and algorithm on every protected route.")
        if "header_injection" in flagged:
            recs.append("Reject or sanitize spoofable and malformed request headers.")
        if "brute_force" in flagged:
            recs.append("CRITICAL: a common password was accepted; enforce password policy and login throttling.")
        brute = security.components.get("brute_force")
        if brute is not None and brute.metrics.get("rate_limited", 0) == 0:
            recs.append("Rate-limit the login endpoint to slow down password guessing.")
    return recs

import logging
from typing import List

from ..config import HarnessConfig
from ..http_client import ProbeDispatcher
from ..models import (
    Category,
    ConcurrencyMode,
    EvidenceKind,
    PayloadCase,
    PhaseResult,
    ProbeRequest,
    Success,
    VulnerabilityFinding,
)
from ..scoring import campaign_score
from ..utils import excerpt, extract_token

logger = logging.getLogger("gauntlet.attacks.brute")


def build_brute_force_cases(config: HarnessConfig) -> List[PayloadCase]:
    return [
        PayloadCase(
            category=Category.BRUTE_FORCE,
            target_endpoint=config.endpoints.login,
            target_field="password",
            payload_value=password,
        )
        for password in config.security.brute_force.passwords
    ]


def run_brute_force(dispatcher: ProbeDispatcher, config: HarnessConfig) -> PhaseResult:
    """
    Dictionary attack against one fixed identity.
    Attempts go out strictly one after another with a pause in between, and
    the campaign never stops early: lockouts and 429s are part of the result.
    """
    brute = config.security.brute_force
    cases = build_brute_force_cases(config)
    probes = [
        ProbeRequest(
            method="POST",
            path=case.target_endpoint,
            body={brute.identity_field: brute.identity, "password": case.payload_value},
            timeout_ms=config.server.timeout_ms,
        )
        for case in cases
    ]
    logger.info("Brute force: %d passwords against %s", len(probes), brute.identity)

    outcomes = dispatcher.dispatch_batch(probes, mode=ConcurrencyMode.SEQUENTIAL, pacing_ms=brute.delay_ms)

    findings = []
    rate_limited = rejected = errors = 0
    for case, outcome in zip(cases, outcomes):
        if not isinstance(outcome, Success):
            errors += 1
            continue
        if outcome.status == 200 and extract_token(outcome.body_snippet):
            logger.warning("Brute force: password %r accepted for %s", case.payload_value, brute.identity)
            findings.append(VulnerabilityFinding(
                category=Category.BRUTE_FORCE,
                endpoint=case.target_endpoint,
                payload_excerpt=excerpt(case.payload_value, config.security.excerpt_length),
                evidence_kind=EvidenceKind.UNAUTHORIZED_SUCCESS,
                status=outcome.status,
            ))
        elif outcome.status == 429:
            rate_limited += 1
        elif outcome.status == 401:
            rejected += 1

    logger.info("Brute force: %d attempts, %d accepted, %d rate limited",
                len(outcomes), len(findings), rate_limited)
    return PhaseResult(
        name=Category.BRUTE_FORCE.value,
        tested=len(outcomes),
        flagged=len(findings),
        score=campaign_score(len(outcomes), len(findings)),
        details=findings,
        metrics={
            "attempts": len(outcomes),
            "successful": len(findings),
            "rate_limited": rate_limited,
            "rejected": rejected,
            "errors": errors,
        },
    )

import logging
from typing import List

from ..config import HarnessConfig
from ..http_client import ProbeDispatcher
from ..models import (
    Category,
    EvidenceKind,
    PhaseResult,
    ProbeRequest,
    Session,
    Success,
    VulnerabilityFinding,
)
from ..scoring import campaign_score
from ..utils import excerpt

logger = logging.getLogger("gauntlet.attacks.auth_routes")


def replay_payloads(config: HarnessConfig) -> List[str]:
    """The first few XSS and SQLi payloads, in that order."""
    count = config.security.replay_count
    payloads = config.security.payloads
    return list(payloads.get(Category.XSS, [])[:count]) + list(payloads.get(Category.SQLI, [])[:count])


def run_authenticated_replay(dispatcher: ProbeDispatcher, config: HarnessConfig,
                             session: Session) -> PhaseResult:
    """
    Stores injection payloads through the authenticated task API.
    A 201 means the payload was accepted unfiltered (flagged); finding it
    verbatim in the following listing is noted as a reflection only.
    """
    auth = session.auth_headers()
    endpoint = config.endpoints.protected
    timeout_ms = config.server.timeout_ms
    excerpt_length = config.security.excerpt_length

    findings = []
    reflections = []
    tested = 0
    for payload in replay_payloads(config):
        created = dispatcher.dispatch(ProbeRequest(
            method="POST",
            path=endpoint,
            headers=auth,
            body={
                "title": payload,
                "description": f"Test task with payload: {payload}",
                "completed": False,
            },
            timeout_ms=timeout_ms,
        ))
        tested += 1
        if isinstance(created, Success) and created.status == 201:
            findings.append(VulnerabilityFinding(
                category=Category.AUTHENTICATED_ROUTES,
                endpoint=endpoint,
                payload_excerpt=excerpt(payload, excerpt_length),
                evidence_kind=EvidenceKind.ANOMALOUS_STATUS,
                status=created.status,
            ))

        listing = dispatcher.dispatch(ProbeRequest(method="GET", path=endpoint, headers=auth,
                                                   timeout_ms=timeout_ms))
        if isinstance(listing, Success) and listing.status == 200 and payload in listing.body_snippet:
            reflections.append(excerpt(payload, excerpt_length))

    logger.info("Authenticated routes: %d payloads stored, %d reflected", len(findings), len(reflections))
    return PhaseResult(
        name=Category.AUTHENTICATED_ROUTES.value,
        tested=tested,
        flagged=len(findings),
        score=campaign_score(tested, len(findings)),
        details=findings,
        metrics={"reflections": reflections},
    )

from typing import Dict, Optional

from ..models import EvidenceKind, PayloadCase, ProbeOutcome, ServerError, Success

# Payload literals that mean "send no Authorization header at all"
ABSENT_CREDENTIAL = ("null", "undefined", "")


def bypass_headers(payload: str) -> Dict[str, str]:
    if payload in ABSENT_CREDENTIAL:
        return {}
    return {"Authorization": payload}


def classify_jwt_bypass(case: PayloadCase, outcome: ProbeOutcome) -> Optional[EvidenceKind]:
    """Any 2xx from a protected route on a forged or missing credential."""
    if isinstance(outcome, Success) and outcome.ok:
        return EvidenceKind.UNAUTHORIZED_SUCCESS
    return None


def is_unexpected(outcome: ProbeOutcome) -> bool:
    """Neither accepted nor rejected with 401/403. Recorded, not flagged."""
    if isinstance(outcome, ServerError):
        return True
    if isinstance(outcome, Success):
        return not outcome.ok and outcome.status not in (401, 403)
    return False

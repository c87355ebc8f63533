from typing import Optional
from urllib.parse import quote

from ..models import EvidenceKind, PayloadCase, ProbeOutcome, Success

SENSITIVE_FILE_SIGNATURES = ["passwd", "shadow", "hosts", "boot.ini", "system32"]


def traversal_path(endpoint: str, payload: str) -> str:
    """Appends the payload as a single encoded path segment."""
    return endpoint + quote(payload, safe="!~*'()")


def classify_path_traversal(case: PayloadCase, outcome: ProbeOutcome) -> Optional[EvidenceKind]:
    if not isinstance(outcome, Success) or outcome.status != 200:
        return None
    body = outcome.body_snippet.lower()
    if any(sig in body for sig in SENSITIVE_FILE_SIGNATURES):
        return EvidenceKind.ERROR_LEAK
    return None

from typing import Optional

from ..models import EvidenceKind, PayloadCase, ProbeOutcome, ServerError, Success

INJECTED_HEADER_MARKER = "x-injected"
INJECTED_VALUE_MARKER = "<script>"


def classify_header_injection(case: PayloadCase, outcome: ProbeOutcome) -> Optional[EvidenceKind]:
    """
    A 5xx on a spoofed/malformed header set, or a response header that
    carries our injected name or value back to the client.
    """
    if isinstance(outcome, ServerError):
        return EvidenceKind.ANOMALOUS_STATUS
    if not isinstance(outcome, Success):
        return None

    for name, value in outcome.headers.items():
        if INJECTED_HEADER_MARKER in name.lower():
            return EvidenceKind.REFLECTED_PAYLOAD
        if INJECTED_VALUE_MARKER in str(value).lower():
            return EvidenceKind.REFLECTED_PAYLOAD
    return None

from typing import Optional

from ..models import EvidenceKind, PayloadCase, ProbeOutcome, Success

EXECUTABLE_MARKERS = ["<script>", "javascript:", "onerror"]


def classify_xss(case: PayloadCase, outcome: ProbeOutcome) -> Optional[EvidenceKind]:
    # Unescaped echo of something a browser would run
    if not isinstance(outcome, Success):
        return None
    payload = case.payload_value
    if not isinstance(payload, str) or not payload:
        return None

    lowered = payload.lower()
    if payload in outcome.body_snippet and any(m in lowered for m in EXECUTABLE_MARKERS):
        return EvidenceKind.REFLECTED_PAYLOAD
    return None

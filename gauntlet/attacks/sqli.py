from typing import Optional

from ..models import EvidenceKind, PayloadCase, ProbeOutcome, ServerError, Success

# Database driver / parser messages that should never reach a client
DB_ERROR_SIGNATURES = [
    "sql syntax",
    "mysql",
    "sqlite",
    "postgres",
    "oracle",
    "syntax error",
    "unexpected",
    "column",
    "table",
    "database error",
    "query failed",
]


def classify_sqli(case: PayloadCase, outcome: ProbeOutcome) -> Optional[EvidenceKind]:
    """
    Error-based detection only: a leaked database fingerprint in the body,
    or a 500 whose body mentions an error.
    """
    if not isinstance(outcome, (Success, ServerError)):
        return None

    body = outcome.body_snippet.lower()
    if any(sig in body for sig in DB_ERROR_SIGNATURES):
        return EvidenceKind.ERROR_LEAK
    if outcome.status == 500 and "error" in body:
        return EvidenceKind.ERROR_LEAK
    return None

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .errors import MissingCredentialError


class OutcomeKind(str, Enum):
    SUCCESS = "SUCCESS"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVER_ERROR = "SERVER_ERROR"


class Category(str, Enum):
    SQLI = "sql_injection"
    XSS = "xss"
    PATH_TRAVERSAL = "path_traversal"
    HEADER_INJECTION = "header_injection"
    JWT_BYPASS = "jwt_bypass"
    BRUTE_FORCE = "brute_force"
    # Replay of XSS/SQLi payloads through task creation
    AUTHENTICATED_ROUTES = "authenticated_routes"


class EvidenceKind(str, Enum):
    REFLECTED_PAYLOAD = "REFLECTED_PAYLOAD"
    ERROR_LEAK = "ERROR_LEAK"
    UNAUTHORIZED_SUCCESS = "UNAUTHORIZED_SUCCESS"
    ANOMALOUS_STATUS = "ANOMALOUS_STATUS"


class ConcurrencyMode(str, Enum):
    SEQUENTIAL = "SEQUENTIAL"
    CONCURRENT = "CONCURRENT"


class PhaseKind(str, Enum):
    AUTHENTICATION = "authentication"
    CONNECTIVITY = "connectivity"
    LOAD = "load"
    SECURITY = "security"


class Suite(str, Enum):
    QUICK = "quick"
    STRESS = "stress"
    SECURITY = "security"
    AUTH = "auth"
    FULL = "full"

    @property
    def phases(self) -> Tuple[PhaseKind, ...]:
        if self is Suite.AUTH:
            return (PhaseKind.AUTHENTICATION,)
        elif self is Suite.QUICK:
            return (PhaseKind.AUTHENTICATION, PhaseKind.CONNECTIVITY)
        elif self is Suite.STRESS:
            return (PhaseKind.AUTHENTICATION, PhaseKind.LOAD)
        elif self is Suite.SECURITY:
            return (PhaseKind.AUTHENTICATION, PhaseKind.SECURITY)
        elif self is Suite.FULL:
            return (PhaseKind.AUTHENTICATION, PhaseKind.LOAD, PhaseKind.SECURITY)
        raise AssertionError(f"unhandled suite: {self}")


class OrchestratorState(str, Enum):
    IDLE = "IDLE"
    AUTH_PHASE = "AUTH_PHASE"
    CONNECTIVITY_PHASE = "CONNECTIVITY_PHASE"
    LOAD_PHASE = "LOAD_PHASE"
    SECURITY_PHASE = "SECURITY_PHASE"
    DONE = "DONE"
    ABORTED = "ABORTED"


class Classification(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    AVERAGE = "Average"
    POOR = "Poor"
    CRITICAL = "Critical"


@dataclass(frozen=True)
class ProbeRequest:
    """One outbound request. Headers and a mapping body are frozen into read-only copies."""
    method: str
    path: str
    timeout_ms: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[Any] = None

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        if isinstance(self.body, Mapping):
            object.__setattr__(self, "body", MappingProxyType(copy.deepcopy(dict(self.body))))


@dataclass(frozen=True)
class Success:
    status: int
    body_snippet: str
    headers: Mapping[str, str]
    latency_ms: float
    kind = OutcomeKind.SUCCESS

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass(frozen=True)
class Timeout:
    latency_ms: float
    kind = OutcomeKind.TIMEOUT
    ok = False


@dataclass(frozen=True)
class NetworkError:
    reason: str
    kind = OutcomeKind.NETWORK_ERROR
    ok = False


@dataclass(frozen=True)
class ServerError:
    status: int
    body_snippet: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    latency_ms: float = 0.0
    kind = OutcomeKind.SERVER_ERROR
    ok = False


ProbeOutcome = Union[Success, Timeout, NetworkError, ServerError]


@dataclass(frozen=True)
class Session:
    bearer_token: Optional[str] = None
    identity: Optional[str] = None
    verified: bool = False

    @property
    def authenticated(self) -> bool:
        return bool(self.bearer_token)

    def auth_headers(self) -> Dict[str, str]:
        if not self.bearer_token:
            raise MissingCredentialError("Session has no bearer token; call establish() first.")
        return {"Authorization": f"Bearer {self.bearer_token}"}


@dataclass(frozen=True)
class PayloadCase:
    category: Category
    target_endpoint: str
    target_field: Optional[str]
    payload_value: Union[str, Mapping[str, str]]
    requires_auth: bool = False
    method: str = "POST"


@dataclass(frozen=True)
class VulnerabilityFinding:
    category: Category
    endpoint: str
    payload_excerpt: str
    evidence_kind: EvidenceKind
    status: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "endpoint": self.endpoint,
            "payload": self.payload_excerpt,
            "evidence": self.evidence_kind.value,
            "status": self.status,
        }


@dataclass(frozen=True)
class PhaseResult:
    """Counts, findings and score of one phase, sub-assessment or campaign."""
    name: str
    tested: int
    flagged: int
    score: int
    details: Tuple[VulnerabilityFinding, ...] = ()
    metrics: Mapping[str, Any] = field(default_factory=dict)
    components: Mapping[str, "PhaseResult"] = field(default_factory=dict)

    def __post_init__(self):
        if not 0 <= self.flagged <= self.tested:
            raise ValueError(f"{self.name}: flagged={self.flagged} outside [0, tested={self.tested}]")
        if not 0 <= self.score <= 100:
            raise ValueError(f"{self.name}: score={self.score} outside [0, 100]")
        object.__setattr__(self, "details", tuple(self.details))
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))
        object.__setattr__(self, "components", MappingProxyType(dict(self.components)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tested": self.tested,
            "flagged": self.flagged,
            "score": self.score,
            "details": [f.to_dict() for f in self.details],
            "metrics": dict(self.metrics),
            "components": {k: v.to_dict() for k, v in self.components.items()},
        }


@dataclass
class FinalReport:
    suite: Suite
    started_at: datetime
    finished_at: datetime
    phase_results: Dict[str, PhaseResult]
    composite_score: int
    classification: Classification
    state: OrchestratorState
    success: bool
    error: Optional[str] = None
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suite": self.suite.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_s": round((self.finished_at - self.started_at).total_seconds(), 3),
            "state": self.state.value,
            "success": self.success,
            "error": self.error,
            "composite_score": self.composite_score,
            "classification": self.classification.value,
            "phases": {name: res.to_dict() for name, res in self.phase_results.items()},
            "recommendations": list(self.recommendations),
        }

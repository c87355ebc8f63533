import logging
import time
from typing import Dict, Optional

from .config import HarnessConfig
from .errors import SessionError
from .http_client import ProbeDispatcher
from .models import NetworkError, PhaseResult, ProbeRequest, ServerError, Session, Success, Timeout
from .utils import extract_token

logger = logging.getLogger("gauntlet.session")

AUTH_CHECK_POINTS = 20


def _describe(outcome) -> str:
    if isinstance(outcome, (Success, ServerError)):
        return f"HTTP {outcome.status}"
    if isinstance(outcome, Timeout):
        return f"timeout after {outcome.latency_ms:.0f}ms"
    if isinstance(outcome, NetworkError):
        return outcome.reason
    return repr(outcome)


class SessionManager:
    """
    Registers a throwaway identity, logs in and keeps the bearer credential
    for the rest of the run. The Session is set once and never refreshed.
    """

    def __init__(self, dispatcher: ProbeDispatcher, config: HarnessConfig):
        self.dispatcher = dispatcher
        self.config = config
        self.session: Optional[Session] = None
        self.identity = self._identity()
        self.registered_status: Optional[int] = None

    def _identity(self) -> Dict[str, str]:
        suffix = str(int(time.time() * 1000))[-6:]
        user = self.config.test_user
        return {
            "username": user.username or f"testuser{suffix}",
            "email": user.email or f"test{suffix}@example.com",
            "password": user.password,
            "firstName": "Test",
            "lastName": "User",
        }

    def _probe(self, method: str, path: str, body=None, headers=None) -> ProbeRequest:
        return ProbeRequest(method=method, path=path, body=body, headers=headers or {},
                            timeout_ms=self.config.server.timeout_ms)

    def register(self):
        outcome = self.dispatcher.dispatch(
            self._probe("POST", self.config.endpoints.register, body=dict(self.identity))
        )
        if isinstance(outcome, Success) and outcome.status in (200, 201):
            logger.info("Registered test identity %s", self.identity["email"])
        elif isinstance(outcome, Success) and outcome.status == 409:
            logger.info("Test identity %s already exists, continuing", self.identity["email"])
        else:
            raise SessionError(f"Registration failed: {_describe(outcome)}")
        self.registered_status = outcome.status

    def login(self) -> str:
        outcome = self.dispatcher.dispatch(self._probe(
            "POST", self.config.endpoints.login,
            body={"identifier": self.identity["email"], "password": self.identity["password"]},
        ))
        token = extract_token(outcome.body_snippet) if isinstance(outcome, Success) and outcome.status == 200 else None
        if not token:
            raise SessionError(f"Login did not issue a usable credential: {_describe(outcome)}")
        logger.info("Logged in as %s", self.identity["email"])
        return token

    def verify(self, token: str) -> bool:
        outcome = self.dispatcher.dispatch(self._probe(
            "GET", self.config.endpoints.protected,
            headers={"Authorization": f"Bearer {token}"},
        ))
        return isinstance(outcome, Success) and outcome.ok

    def establish(self) -> Session:
        """
        register -> login -> verify. A conflict on register counts as success;
        a failed verification is only logged since a token was obtained.
        """
        if self.session is not None:
            return self.session

        self.register()
        token = self.login()
        verified = self.verify(token)
        if not verified:
            logger.warning("Protected route rejected the fresh token; continuing with it anyway")

        self.session = Session(bearer_token=token, identity=self.identity["email"], verified=verified)
        return self.session

    def assess(self) -> PhaseResult:
        """
        Authentication phase score: five checks worth 20 points each.
        Requires establish() to have succeeded.
        """
        session = self.establish()
        endpoints = self.config.endpoints

        wrong_login = self.dispatcher.dispatch(self._probe(
            "POST", endpoints.login,
            body={"identifier": self.identity["email"], "password": "wrong-password"},
        ))
        no_token = self.dispatcher.dispatch(self._probe("GET", endpoints.protected))

        checks = {
            "register_accepted": self.registered_status in (200, 201, 409),
            "login_issued_token": session.authenticated,
            "protected_access": session.verified,
            "invalid_login_rejected": isinstance(wrong_login, Success) and wrong_login.status == 401,
            "anonymous_access_rejected": isinstance(no_token, Success) and no_token.status in (401, 403),
        }
        passed = sum(1 for ok in checks.values() if ok)
        for name, ok in checks.items():
            logger.info("auth check %-26s %s", name, "OK" if ok else "FAILED")

        return PhaseResult(
            name="authentication",
            tested=len(checks),
            flagged=len(checks) - passed,
            score=passed * AUTH_CHECK_POINTS,
            metrics={"checks": checks, "identity": session.identity},
        )

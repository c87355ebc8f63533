import logging
from typing import Dict, List, Optional

from .attacks import CLASSIFIERS, run_authenticated_replay, run_brute_force
from .attacks.jwt_weakness import bypass_headers, is_unexpected
from .attacks.lfi import traversal_path
from .config import HarnessConfig
from .errors import SessionError
from .http_client import ProbeDispatcher
from .models import (
    Category,
    ConcurrencyMode,
    PayloadCase,
    PhaseResult,
    ProbeRequest,
    Session,
    VulnerabilityFinding,
)
from .scoring import campaign_score, security_score
from .utils import excerpt

logger = logging.getLogger("gauntlet.fuzzer")

# Campaign order inside the security phase
CAMPAIGN_ORDER = (
    Category.SQLI,
    Category.XSS,
    Category.PATH_TRAVERSAL,
    Category.BRUTE_FORCE,
    Category.JWT_BYPASS,
    Category.HEADER_INJECTION,
    Category.AUTHENTICATED_ROUTES,
)


class PayloadFuzzer:
    """
    Runs the attack-payload campaigns. Each campaign is the cartesian product
    of its configured targets and payload list, classified one response at a
    time. Findings keep only a short excerpt of the payload.
    """

    def __init__(self, dispatcher: ProbeDispatcher, config: HarnessConfig,
                 session: Optional[Session] = None):
        self.dispatcher = dispatcher
        self.config = config
        self.session = session

    def build_cases(self, category: Category) -> List[PayloadCase]:
        security = self.config.security
        cases = []
        for target in security.targets.get(category, []):
            for payload in security.payloads.get(category, []):
                cases.append(PayloadCase(
                    category=category,
                    target_endpoint=target.endpoint,
                    target_field=target.field,
                    payload_value=payload,
                    requires_auth=target.auth,
                    method=target.method,
                ))
        return cases

    def build_probe(self, case: PayloadCase) -> ProbeRequest:
        timeout_ms = self.config.server.timeout_ms
        headers: Dict[str, str] = {}
        if case.requires_auth:
            headers.update(self._session().auth_headers())

        if case.category is Category.PATH_TRAVERSAL:
            return ProbeRequest(method=case.method, path=traversal_path(case.target_endpoint, case.payload_value),
                                headers=headers, timeout_ms=timeout_ms)
        elif case.category is Category.HEADER_INJECTION:
            headers.update({str(k): str(v) for k, v in dict(case.payload_value).items()})
            return ProbeRequest(method=case.method, path=case.target_endpoint,
                                headers=headers, timeout_ms=timeout_ms)
        elif case.category is Category.JWT_BYPASS:
            # the forged credential replaces any real one
            return ProbeRequest(method=case.method, path=case.target_endpoint,
                                headers=bypass_headers(case.payload_value), timeout_ms=timeout_ms)
        elif case.category in (Category.SQLI, Category.XSS, Category.BRUTE_FORCE):
            body = dict(self.config.security.base_body)
            if case.target_field:
                body[case.target_field] = case.payload_value
            return ProbeRequest(method=case.method, path=case.target_endpoint, headers=headers,
                                body=body, timeout_ms=timeout_ms)
        raise AssertionError(f"no probe shape for {case.category}")

    def _session(self) -> Session:
        if self.session is None or not self.session.authenticated:
            raise SessionError("Authenticated payload cases need an established session")
        return self.session

    def run_campaign(self, category: Category) -> PhaseResult:
        """
        One independently dispatched campaign (SQLi, XSS, path traversal,
        header injection or JWT bypass). Cases run concurrently.
        """
        classify = CLASSIFIERS[category]
        cases = self.build_cases(category)
        if any(case.requires_auth for case in cases):
            self._session()

        logger.info("%s: %d cases", category.value, len(cases))
        probes = [self.build_probe(case) for case in cases]
        outcomes = self.dispatcher.dispatch_batch(probes, mode=ConcurrencyMode.CONCURRENT)

        findings = []
        unexpected = []
        excerpt_length = self.config.security.excerpt_length
        for case, outcome in zip(cases, outcomes):
            evidence = classify(case, outcome)
            if evidence is not None:
                findings.append(VulnerabilityFinding(
                    category=category,
                    endpoint=case.target_endpoint,
                    payload_excerpt=excerpt(case.payload_value, excerpt_length),
                    evidence_kind=evidence,
                    status=getattr(outcome, "status", None),
                ))
            elif category is Category.JWT_BYPASS and is_unexpected(outcome):
                unexpected.append({"payload": excerpt(case.payload_value, excerpt_length),
                                   "status": getattr(outcome, "status", None)})

        kinds: Dict[str, int] = {}
        for outcome in outcomes:
            kinds[outcome.kind.value] = kinds.get(outcome.kind.value, 0) + 1

        metrics = {"outcomes": kinds}
        if category is Category.JWT_BYPASS:
            metrics["unexpected"] = unexpected

        if findings:
            logger.warning("%s: %d of %d cases flagged", category.value, len(findings), len(cases))
        else:
            logger.info("%s: nothing flagged", category.value)
        return PhaseResult(
            name=category.value,
            tested=len(outcomes),
            flagged=len(findings),
            score=campaign_score(len(outcomes), len(findings)),
            details=findings,
            metrics=metrics,
        )

    def run_brute_force(self) -> PhaseResult:
        return run_brute_force(self.dispatcher, self.config)

    def run_authenticated_routes(self) -> PhaseResult:
        return run_authenticated_replay(self.dispatcher, self.config, self._session())

    def run(self, category: Category) -> PhaseResult:
        if category is Category.BRUTE_FORCE:
            return self.run_brute_force()
        elif category is Category.AUTHENTICATED_ROUTES:
            return self.run_authenticated_routes()
        return self.run_campaign(category)

    def run_all(self) -> PhaseResult:
        """Security phase: every campaign in order, then the deduction score."""
        campaigns = {category: self.run(category) for category in CAMPAIGN_ORDER}
        score = security_score(campaigns)
        logger.info("Security score: %d/100", score)
        return PhaseResult(
            name="security",
            tested=sum(r.tested for r in campaigns.values()),
            flagged=sum(r.flagged for r in campaigns.values()),
            score=score,
            details=[f for r in campaigns.values() for f in r.details],
            components={category.value: result for category, result in campaigns.items()},
        )

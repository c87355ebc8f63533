import logging
from datetime import datetime
from typing import Dict, Optional

from .checks import run_connectivity_check
from .config import HarnessConfig
from .fuzzer import PayloadFuzzer
from .http_client import ProbeDispatcher
from .load import LoadAssessor
from .models import FinalReport, OrchestratorState, PhaseKind, PhaseResult, Suite
from .scoring import classify, composite_score, recommendations
from .session import SessionManager

logger = logging.getLogger("gauntlet.engine")


class Orchestrator:
    """
    Runs the phases of a suite strictly one after another.

    IDLE -> AUTH_PHASE -> (CONNECTIVITY | LOAD | SECURITY)_PHASE... -> DONE,
    or IDLE -> AUTH_PHASE -> ABORTED when no session can be established.
    A later phase that fails stops the run, but the phases that completed
    are still reported.
    """

    def __init__(self, config: HarnessConfig, dispatcher: Optional[ProbeDispatcher] = None):
        self.config = config.validate()
        self._injected_dispatcher = dispatcher
        self.dispatcher = dispatcher
        self.session_manager = None
        self.state = OrchestratorState.IDLE

    def _new_dispatcher(self) -> ProbeDispatcher:
        return ProbeDispatcher(
            self.config.server.base_url,
            max_in_flight=self.config.stress.max_in_flight,
            snippet_limit=self.config.server.snippet_limit,
        )

    def _run_phase(self, kind: PhaseKind) -> PhaseResult:
        if kind is PhaseKind.AUTHENTICATION:
            self.state = OrchestratorState.AUTH_PHASE
            return self.session_manager.assess()
        elif kind is PhaseKind.CONNECTIVITY:
            self.state = OrchestratorState.CONNECTIVITY_PHASE
            return run_connectivity_check(self.dispatcher, self.config)
        elif kind is PhaseKind.LOAD:
            self.state = OrchestratorState.LOAD_PHASE
            return LoadAssessor(self.dispatcher, self.config, self.session_manager.session).run_all()
        elif kind is PhaseKind.SECURITY:
            self.state = OrchestratorState.SECURITY_PHASE
            return PayloadFuzzer(self.dispatcher, self.config, self.session_manager.session).run_all()
        raise AssertionError(f"unhandled phase: {kind}")

    def run(self, suite: Suite) -> FinalReport:
        started_at = datetime.now()
        self.state = OrchestratorState.IDLE
        # Each run gets its own session; an owned dispatcher lives for one run only
        owns_dispatcher = self._injected_dispatcher is None
        self.dispatcher = self._new_dispatcher() if owns_dispatcher else self._injected_dispatcher
        self.session_manager = SessionManager(self.dispatcher, self.config)
        results: Dict[str, PhaseResult] = {}
        error = None
        logger.info("Starting %s suite against %s", suite.value, self.config.server.base_url)

        try:
            for kind in suite.phases:
                try:
                    result = self._run_phase(kind)
                except Exception as e:
                    error = f"{kind.value} phase failed: {e}"
                    if kind is PhaseKind.AUTHENTICATION:
                        logger.error("Aborting run: %s", e)
                        self.state = OrchestratorState.ABORTED
                    else:
                        logger.exception("Phase %s failed, skipping remaining phases", kind.value)
                    break
                results[result.name] = result
                logger.info("Phase %s finished: %d/100", result.name, result.score)
        finally:
            if owns_dispatcher:
                self.dispatcher.close()

        if self.state is not OrchestratorState.ABORTED:
            self.state = OrchestratorState.DONE

        composite = composite_score(r.score for r in results.values())
        return FinalReport(
            suite=suite,
            started_at=started_at,
            finished_at=datetime.now(),
            phase_results=results,
            composite_score=composite,
            classification=classify(composite),
            state=self.state,
            success=error is None,
            error=error,
            recommendations=recommendations(results, composite),
        )

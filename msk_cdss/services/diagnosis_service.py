"""
Diagnosis Service

Wraps the pure engines in the read-modify-write discipline the session
store requires:

    read record → rebuild state from the persisted log → apply exactly one
    change → conditional write on the version that was read

A lost conditional write is retried with freshly read state, up to
`settings.max_write_retries` times.  Validation failures (stale test,
locked session, desync) are never retried: re-reading cannot change them.

Completion is at-most-once: the refined diagnosis and the lock are written
in a single conditional write, so a second concurrent completion re-reads,
sees the lock and fails with SessionLockedError.
"""
from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from msk_cdss.config import settings
from msk_cdss.core.guided import GuidedTestEngine, GuidedTestState, RefinedDiagnosis, is_skip
from msk_cdss.core.intake import IntakeSessionState
from msk_cdss.core.ml import MLBridge
from msk_cdss.core.rules import normalize_region
from msk_cdss.core.scoring import DiagnosisCandidate, score
from msk_cdss.utils import get_logger
from msk_cdss.utils.exceptions import (
    ConcurrentUpdateError,
    IncompleteSessionError,
    SessionLockedError,
    UnknownRegionError,
)
from .session_store import DiagnosisSessionRecord, InMemorySessionStore, SessionStore, utc_now

logger = get_logger(__name__)


class DiagnosisService:
    """Session-level operations over the intake, scoring and guided engines."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        guided: Optional[GuidedTestEngine] = None,
        ml_bridge: Optional[MLBridge] = None,
        max_write_retries: Optional[int] = None,
        clock: Callable[[], str] = utc_now,
    ):
        self.store = store if store is not None else InMemorySessionStore()
        self.guided = guided or GuidedTestEngine()
        self.ml_bridge = ml_bridge or MLBridge()
        self.max_write_retries = (
            settings.max_write_retries if max_write_retries is None else max_write_retries
        )
        self._clock = clock

    # ── Patient side ──────────────────────────────────────────────────────

    def submit_assessment(
        self,
        intake: Union[IntakeSessionState, Mapping[str, str]],
        region: Optional[str] = None,
        red_flags: Optional[Iterable[str]] = None,
        allow_partial: bool = False,
        patient_id: Optional[str] = None,
    ) -> DiagnosisSessionRecord:
        """
        Score a finished questionnaire and persist a new diagnosis session.

        Args:
            intake: the final IntakeSessionState, or raw question → answer responses.
            region: required when `intake` is raw responses that cannot
                    identify their region on their own.

        Raises:
            IncompleteSessionError: the questionnaire is unfinished and
                `allow_partial` is False.
            UnknownRegionError, InvalidAnswerError: from scoring.
        """
        if isinstance(intake, IntakeSessionState):
            if not intake.is_complete and not allow_partial:
                raise IncompleteSessionError(
                    "Intake questionnaire is not complete",
                    details={"current_node_id": intake.current_node_id},
                )
            responses = dict(intake.responses)
            flags = list(intake.red_flags) + list(red_flags or [])
            region = region or intake.selected_region
        else:
            responses = dict(intake or {})
            flags = list(red_flags or [])

        candidate = score(responses, flags, region)
        resolved = candidate.region or (normalize_region(region) if region else None)
        if resolved is None:
            raise UnknownRegionError(region, details={"reason": "region required for an empty assessment"})

        guided_state = self.guided.initialize(resolved)
        record = DiagnosisSessionRecord(
            session_id=str(uuid.uuid4()),
            region=resolved,
            responses=responses,
            red_flags=list(candidate.red_flags),
            ai_analysis=candidate.to_dict(),
            ml_analysis=self.ml_bridge.request_diagnosis(responses, candidate),
            guided_test_results={**guided_state.to_dict(), "therapistId": None},
            patient_id=patient_id,
        )
        stored = self.store.create(record)
        logger.info(
            f"DiagnosisService: session {stored.session_id} [{resolved}] "
            f"{candidate.temporal_diagnosis} ({candidate.risk_level.value})",
            extra={"session_id": stored.session_id, "region": resolved, "risk_level": candidate.risk_level.value},
        )
        return stored

    def get_session(self, session_id: str) -> DiagnosisSessionRecord:
        return self.store.get(session_id)

    def ml_insights(self, session_id: str) -> Dict[str, Any]:
        """Model posterior and explanation for a session, offered beside the heuristic result."""
        record = self.store.get(session_id)
        diagnosis = (record.ai_analysis or {}).get("temporalDiagnosis")
        return {
            "sessionId": record.session_id,
            "heuristic": record.ai_analysis,
            "posterior": self.ml_bridge.bayesian_posterior(record.responses, diagnosis),
            "explanation": self.ml_bridge.model_explanation(record.session_id),
        }

    # ── Clinician side ────────────────────────────────────────────────────

    def guided_status(self, session_id: str) -> Dict[str, Any]:
        """
        Current guided-test position, rebuilt from the persisted log.

        Read-only: safe to call again after a dropped response.
        """
        record = self.store.get(session_id)
        state = self.guided.sync(self._guided_state(record))
        return self._status(record, state)

    def record_test_result(
        self,
        session_id: str,
        test_id: str,
        result: str,
        notes: str = "",
        clinician_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Record one confirmatory test result.

        A `result` of "Skipped" logs the test as not performed, with `notes`
        as the reason, and follows its Inconclusive edge.

        Raises:
            SessionLockedError, StaleTestError, InvalidAnswerError,
            GraphDesyncError: from the engine, never retried.
            ConcurrentUpdateError: still contended after all retries.
        """
        def apply(record: DiagnosisSessionRecord) -> DiagnosisSessionRecord:
            state = self._guided_state(record)
            if is_skip(result):
                updated = self.guided.skip_test(
                    state,
                    test_id,
                    reason=notes,
                    performed_by=clinician_id,
                    timestamp=self._clock(),
                )
            else:
                updated = self.guided.record_result(
                    state,
                    test_id,
                    result,
                    notes=notes,
                    performed_by=clinician_id,
                    timestamp=self._clock(),
                )
            return self._with_guided(record, updated, clinician_id)

        saved = self._write(session_id, apply, action="record_test_result")
        return self._status(saved, self._guided_state(saved))

    def complete_session(
        self,
        session_id: str,
        clinician_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> RefinedDiagnosis:
        """
        Finalize the guided tests and lock the session in one conditional write.

        `reason` is stored as the refined diagnosis' completion reason.

        Raises:
            SessionLockedError: the session was already completed.
            IncompleteSessionError: no terminal test node reached yet.
        """
        def apply(record: DiagnosisSessionRecord) -> DiagnosisSessionRecord:
            state = self._guided_state(record)
            if state.is_locked:
                raise SessionLockedError(details={"session_id": session_id})
            state = self.guided.sync(state)
            candidate = DiagnosisCandidate.from_dict(record.ai_analysis)
            refined = self.guided.finalize(state, candidate, completion_reason=reason)
            return self._with_guided(record, self.guided.lock(state, refined), clinician_id)

        saved = self._write(session_id, apply, action="complete_session")
        refined = self._guided_state(saved).refined_diagnosis
        logger.info(
            f"DiagnosisService: session {session_id} locked with "
            f"{refined.final_diagnosis} ({refined.confidence}%, {refined.tier.value})",
            extra={"session_id": session_id},
        )
        return refined

    # ── Helpers ───────────────────────────────────────────────────────────

    def _write(
        self,
        session_id: str,
        apply: Callable[[DiagnosisSessionRecord], DiagnosisSessionRecord],
        action: str,
    ) -> DiagnosisSessionRecord:
        attempts = self.max_write_retries + 1
        attempt = 0
        while True:
            attempt += 1
            record = self.store.get(session_id)
            updated = apply(record)
            try:
                return self.store.save(updated, expected_version=record.version)
            except ConcurrentUpdateError as exc:
                if attempt >= attempts:
                    logger.warning(
                        f"DiagnosisService: {action} on {session_id} gave up after "
                        f"{attempts} attempt(s): {exc.message}"
                    )
                    raise
                logger.warning(
                    f"DiagnosisService: {action} on {session_id} lost a write "
                    f"(attempt {attempt}/{attempts}), retrying with fresh state"
                )

    def _guided_state(self, record: DiagnosisSessionRecord) -> GuidedTestState:
        data = record.guided_test_results or {}
        if not data:
            return self.guided.initialize(record.region)
        return GuidedTestState.from_dict(data)

    @staticmethod
    def _with_guided(
        record: DiagnosisSessionRecord,
        state: GuidedTestState,
        clinician_id: Optional[str],
    ) -> DiagnosisSessionRecord:
        previous = (record.guided_test_results or {}).get("therapistId")
        return replace(
            record,
            guided_test_results={**state.to_dict(), "therapistId": clinician_id or previous},
        )

    def _status(self, record: DiagnosisSessionRecord, state: GuidedTestState) -> Dict[str, Any]:
        current = None if state.is_locked else self.guided.get_current_test(state)
        return {
            "sessionId": record.session_id,
            "version": record.version,
            "state": state.to_dict(),
            "currentTest": current.to_dict() if current else None,
            "therapistId": (record.guided_test_results or {}).get("therapistId"),
            "aiAnalysis": record.ai_analysis,
        }

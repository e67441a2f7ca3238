"""
Guided Test Engine

Walks the clinician through a region's confirmatory test graph.

Every call is served from scratch: the graph is loaded from the declared
rule-graph version and the position is rebuilt by replaying the persisted
append-only test log.  `current_node_id` stored alongside the log is
treated as a hint only and is never trusted over the replay.

Usage:
    from msk_cdss.core.guided import GuidedTestEngine

    engine = GuidedTestEngine()
    state = engine.initialize("ankle")
    test = engine.get_current_test(state)            # Thompson's Test
    state = engine.record_result(state, test.test_id, "Inconclusive")
    state = engine.skip_test(state, "ankle_palpable_gap", "Too painful to palpate")
    refined = engine.finalize(state, candidate)
    state = engine.lock(state, refined)

State machine:
    NotStarted --initialize--> <test nodes> --terminal--> Complete --lock--> Locked
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from msk_cdss.core.rules import ExamOutcome, RuleGraph, load_test_graph, remaining_depth
from msk_cdss.core.scoring import DiagnosisCandidate
from msk_cdss.utils import get_logger
from msk_cdss.utils.exceptions import (
    GraphDesyncError,
    IncompleteSessionError,
    InvalidAnswerError,
    SessionLockedError,
    StaleTestError,
)
from .base import (
    ALL_TESTS_COMPLETED,
    CompletedTest,
    ConfidenceTier,
    GuidedTestState,
    RefinedDiagnosis,
    TestDescriptor,
)

logger = get_logger(__name__)

# ── Refined confidence ───────────────────────────────────────────────────────
CONFIRMED_FLOOR = 85     # provisional diagnosis reached by the examination
REVISED_BASE    = 60     # examination led to a different diagnosis

DEFAULT_SKIP_REASON = "Skipped by clinician"


def _clamp(value: int, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, value))


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class GuidedTestEngine:
    """
    Stateless confirmatory-test driver.

    Safe to share between concurrent requests; all session data lives in the
    GuidedTestState values passed in and returned.
    """

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def initialize(self, region: str) -> GuidedTestState:
        """
        Start a guided test session at the region's first test.

        Raises:
            UnknownRegionError: no confirmatory graph for `region`.
        """
        graph = load_test_graph(region)
        logger.debug(f"GuidedTest [{graph.region}]: initialised at {graph.start_node_id}")
        return GuidedTestState(
            region=graph.region,
            graph_version=graph.version,
            current_node_id=graph.start_node_id,
            is_complete=graph.is_terminal(graph.start_node_id),
        )

    def resume(self, graph: RuleGraph, completed_tests: Sequence[CompletedTest]) -> str:
        """
        Replay the test log from the start node and return the current node id.

        Pure and idempotent: the same log always yields the same position.

        Raises:
            GraphDesyncError: the log names a missing node, a test other than
                the one at the replay position, an outcome the node does not
                offer, or continues past a terminal node.
        """
        current = graph.start_node_id
        for step, entry in enumerate(completed_tests, start=1):
            context = {"region": graph.region, "graph_version": graph.version, "test_id": entry.test_id}
            if not graph.has_node(current):
                raise GraphDesyncError(
                    f"Replay reached unknown node {current!r}", step=step, details=context
                )
            if graph.is_terminal(current):
                raise GraphDesyncError(
                    f"Test log continues past terminal node {current!r}", step=step, details=context
                )
            if entry.test_id != current:
                raise GraphDesyncError(
                    f"Recorded test {entry.test_id!r} does not match replay position {current!r}",
                    step=step,
                    details=context,
                )
            outcome = ExamOutcome.parse(entry.result)
            edge = graph.find_edge(current, outcome.value) if outcome else None
            if edge is None:
                raise GraphDesyncError(
                    f"Test {current!r} has no outcome {entry.result!r}", step=step, details=context
                )
            current = edge.target
        return current

    def sync(self, state: GuidedTestState) -> GuidedTestState:
        """
        Rebuild position and completion from the graph and the test log.

        Raises:
            GraphDesyncError: the log cannot be replayed, or it was recorded
                against a different graph version.
        """
        graph = load_test_graph(state.region)
        if state.completed_tests and state.graph_version and state.graph_version != graph.version:
            raise GraphDesyncError(
                f"Session recorded against graph version {state.graph_version}, "
                f"current version is {graph.version}",
                step=0,
                details={"region": graph.region},
            )
        current = self.resume(graph, state.completed_tests)
        return replace(
            state,
            region=graph.region,
            graph_version=graph.version,
            current_node_id=current,
            is_complete=graph.is_terminal(current),
        )

    # ── Queries ───────────────────────────────────────────────────────────

    def get_current_test(self, state: GuidedTestState) -> Optional[TestDescriptor]:
        """The test to perform next, or None once a terminal node is reached."""
        state = self.sync(state)
        graph = load_test_graph(state.region)
        if graph.is_terminal(state.current_node_id):
            return None
        node = graph.node(state.current_node_id)
        return TestDescriptor(
            test_id=node.node_id,
            name=node.prompt,
            procedure=node.detail,
            target_diagnosis=node.diagnosis,
            allowed_outcomes=graph.labels(node.node_id),
            step=len(state.completed_tests) + 1,
            remaining_depth=remaining_depth(graph, node.node_id),
        )

    # ── Mutations ─────────────────────────────────────────────────────────

    def record_result(
        self,
        state: GuidedTestState,
        test_id: str,
        result,
        notes: str = "",
        performed_by: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> GuidedTestState:
        """
        Append one test result and advance along its outcome edge.

        Raises:
            SessionLockedError: the session is already finalised.
            StaleTestError: `test_id` is not the test at the current position,
                or the flow already reached a terminal node.
            InvalidAnswerError: `result` is not Positive/Negative/Inconclusive.
            GraphDesyncError: the persisted log cannot be replayed.
        """
        return self._append(state, test_id, result, notes, performed_by, timestamp, skipped=False)

    def skip_test(
        self,
        state: GuidedTestState,
        test_id: str,
        reason: str = DEFAULT_SKIP_REASON,
        performed_by: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> GuidedTestState:
        """
        Log the current test as not performed and move on along its
        Inconclusive edge.

        Raises:
            SessionLockedError, StaleTestError, GraphDesyncError: as for
                record_result.
        """
        return self._append(
            state, test_id, ExamOutcome.INCONCLUSIVE, reason or DEFAULT_SKIP_REASON,
            performed_by, timestamp, skipped=True,
        )

    def finalize(
        self,
        state: GuidedTestState,
        candidate: DiagnosisCandidate,
        completion_reason: Optional[str] = None,
    ) -> RefinedDiagnosis:
        """
        Combine the provisional diagnosis with the recorded test outcomes.

        Deterministic: reads no clock, so a retried completion produces the
        same record.  `completed_at` is the timestamp of the last test.

        Args:
            completion_reason: the clinician's reason for closing the
                examination; defaults to "all_tests_completed".

        Raises:
            IncompleteSessionError: no terminal node reached yet.
            GraphDesyncError: the persisted log cannot be replayed.
        """
        state = self.sync(state)
        if not state.is_complete:
            raise IncompleteSessionError(
                details={"current_node_id": state.current_node_id, "tests_recorded": len(state.completed_tests)}
            )

        graph = load_test_graph(state.region)
        terminal = graph.node(state.current_node_id)
        final = terminal.diagnosis
        provisional = candidate.temporal_diagnosis
        provisional_conf = int(candidate.confidence_score)

        net = self._net_adjustments(graph, state.completed_tests)
        adjustment = net.get(final, 0)

        revised = final != provisional
        if revised:
            confidence = _clamp(REVISED_BASE + adjustment)
        else:
            confidence = _clamp(max(provisional_conf + adjustment, CONFIRMED_FLOOR))

        tier = self._tier(graph, state.completed_tests, final)
        supporting = [
            t.test_name for t in state.completed_tests
            if t.result == ExamOutcome.POSITIVE and graph.node(t.test_id).diagnosis == final
        ]
        ruled_out = [d for d, delta in net.items() if delta < 0 and d != final]
        reason = completion_reason or ALL_TESTS_COMPLETED

        refined = RefinedDiagnosis(
            final_diagnosis=final,
            provisional_diagnosis=provisional,
            provisional_confidence=provisional_conf,
            confidence=confidence,
            tier=tier,
            revised=revised,
            tests_performed=[
                {"testId": t.test_id, "testName": t.test_name, "result": t.result.value}
                for t in state.completed_tests if not t.skipped
            ],
            tests_skipped=[
                {"testId": t.test_id, "testName": t.test_name, "reason": t.notes}
                for t in state.completed_tests if t.skipped
            ],
            supporting_tests=supporting,
            contrary_evidence=[
                t.test_name for t in state.completed_tests
                if not t.skipped and t.result == ExamOutcome.NEGATIVE
            ],
            ruled_out=ruled_out,
            clinical_note=terminal.detail,
            narrative=self._narrative(state.completed_tests, provisional, provisional_conf,
                                      final, confidence, tier, revised, ruled_out, terminal.detail,
                                      reason),
            terminal_node_id=terminal.node_id,
            completion_reason=reason,
            completed_at=state.completed_tests[-1].timestamp if state.completed_tests else None,
        )
        logger.debug(
            f"GuidedTest [{graph.region}]: refined {provisional} -> {final} "
            f"({confidence}%, {tier.value})"
        )
        return refined

    def lock(self, state: GuidedTestState, refined: RefinedDiagnosis) -> GuidedTestState:
        """
        Attach the refined diagnosis and lock the session against changes.

        Raises:
            SessionLockedError: already locked.
            IncompleteSessionError: no terminal node reached yet.
        """
        if state.is_locked:
            raise SessionLockedError(details={"region": state.region})
        if not state.is_complete:
            raise IncompleteSessionError()
        return replace(state, refined_diagnosis=refined, is_locked=True)

    # ── Helpers ───────────────────────────────────────────────────────────

    def _append(
        self,
        state: GuidedTestState,
        test_id: str,
        result,
        notes: str,
        performed_by: Optional[str],
        timestamp: Optional[str],
        skipped: bool,
    ) -> GuidedTestState:
        if state.is_locked:
            raise SessionLockedError(details={"region": state.region})

        state = self.sync(state)
        graph = load_test_graph(state.region)
        current = state.current_node_id

        if graph.is_terminal(current):
            raise StaleTestError(test_id, None, details={"terminal_node_id": current})
        if test_id != current:
            raise StaleTestError(test_id, current)

        outcome = ExamOutcome.parse(result)
        edge = graph.find_edge(current, outcome.value) if outcome else None
        if edge is None:
            raise InvalidAnswerError(
                f"{result!r} is not a valid outcome for test {current!r}",
                node_id=current,
                label=str(result),
                details={"options": graph.labels(current)},
            )

        entry = CompletedTest(
            test_id=current,
            test_name=graph.node(current).prompt,
            result=outcome,
            notes=notes or "",
            timestamp=timestamp or _utc_now(),
            performed_by=performed_by,
            skipped=skipped,
        )
        complete = graph.is_terminal(edge.target)
        logger.info(
            f"GuidedTest [{graph.region}]: {entry.test_name} = {entry.display_result} "
            f"-> {edge.target}{' (complete)' if complete else ''}",
            extra={"region": graph.region, "test_id": current},
        )
        return replace(
            state,
            current_node_id=edge.target,
            completed_tests=[*state.completed_tests, entry],
            is_complete=complete,
        )

    @staticmethod
    def _net_adjustments(graph: RuleGraph, tests: Sequence[CompletedTest]) -> Dict[str, int]:
        net: Dict[str, int] = {}
        for entry in tests:
            edge = graph.find_edge(entry.test_id, entry.result.value)
            for tag in edge.adjustments:
                net[tag.code] = net.get(tag.code, 0) + tag.delta
        return net

    @staticmethod
    def _tier(graph: RuleGraph, tests: Sequence[CompletedTest], final: str) -> ConfidenceTier:
        if any(
            t.result == ExamOutcome.POSITIVE and graph.node(t.test_id).diagnosis == final
            for t in tests
        ):
            return ConfidenceTier.CONFIRMED
        if tests and all(t.result == ExamOutcome.INCONCLUSIVE for t in tests):
            return ConfidenceTier.INCONCLUSIVE
        return ConfidenceTier.PROBABLE

    @staticmethod
    def _narrative(
        tests: Sequence[CompletedTest],
        provisional: str,
        provisional_conf: int,
        final: str,
        confidence: int,
        tier: ConfidenceTier,
        revised: bool,
        ruled_out: List[str],
        note: str,
        reason: str,
    ) -> str:
        findings = "; ".join(f"{t.test_name}: {t.display_result}" for t in tests) or "no tests recorded"
        if revised:
            opening = (
                f"Provisional diagnosis of {provisional} ({provisional_conf}%) was revised "
                f"to {final} after examination."
            )
        else:
            opening = (
                f"Provisional diagnosis of {provisional} ({provisional_conf}%) was "
                f"supported by examination."
            )
        parts = [
            opening,
            f"Findings: {findings}.",
            f"Refined confidence {confidence}% ({tier.value}).",
        ]
        if ruled_out:
            parts.append(f"Less likely: {', '.join(ruled_out)}.")
        if note:
            parts.append(note)
        if reason != ALL_TESTS_COMPLETED:
            parts.append(f"Completion reason: {reason}.")
        return " ".join(parts)

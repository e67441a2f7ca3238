"""
Guided Testing - Base Types

Records exchanged between the guided test engine, the session store and
the clinician UI.  Every record serialises to camelCase keys with
`to_dict()` and is rebuilt with `from_dict()`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from msk_cdss.core.rules import ExamOutcome

SKIPPED = "Skipped"
ALL_TESTS_COMPLETED = "all_tests_completed"


def is_skip(value) -> bool:
    """True for the "Skipped" pseudo-result a clinician submits instead of an outcome."""
    return isinstance(value, str) and value.strip().casefold() == SKIPPED.casefold()


class ConfidenceTier(str, Enum):
    """
    How strongly the examination supports the final diagnosis.

    CONFIRMED     – a test targeting the final diagnosis came back Positive
    PROBABLE      – reached by elimination or mixed results
    INCONCLUSIVE  – every recorded result was Inconclusive
    """
    CONFIRMED    = "confirmed"
    PROBABLE     = "probable"
    INCONCLUSIVE = "inconclusive"


@dataclass(frozen=True)
class CompletedTest:
    """
    One entry of the append-only test log.

    A skipped test is logged with `skipped=True` and replays along the
    test's Inconclusive edge; `notes` holds the reason.
    """
    test_id: str
    test_name: str
    result: ExamOutcome
    notes: str = ""
    timestamp: Optional[str] = None
    performed_by: Optional[str] = None
    skipped: bool = False

    @property
    def display_result(self) -> str:
        if self.skipped:
            return SKIPPED
        return getattr(self.result, "value", self.result)

    def to_dict(self) -> dict:
        return {
            "testId": self.test_id,
            "testName": self.test_name,
            "result": self.display_result,
            "notes": self.notes,
            "timestamp": self.timestamp,
            "performedBy": self.performed_by,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CompletedTest":
        raw = data.get("result")
        skipped = is_skip(raw)
        # An unparseable result is kept as-is so replay can report the desync
        result = ExamOutcome.INCONCLUSIVE if skipped else (ExamOutcome.parse(raw) or raw)
        return cls(
            test_id=data["testId"],
            test_name=data.get("testName", data["testId"]),
            result=result,
            notes=data.get("notes") or "",
            timestamp=data.get("timestamp"),
            performed_by=data.get("performedBy"),
            skipped=skipped,
        )


@dataclass(frozen=True)
class TestDescriptor:
    """The test the clinician should perform next."""
    __test__ = False

    test_id: str
    name: str
    procedure: str
    target_diagnosis: Optional[str]
    allowed_outcomes: List[str]
    step: int                  # 1-based position in this session
    remaining_depth: int       # most tests still possible, this one included

    def to_dict(self) -> dict:
        return {
            "testId": self.test_id,
            "name": self.name,
            "procedure": self.procedure,
            "targetDiagnosis": self.target_diagnosis,
            "allowedOutcomes": list(self.allowed_outcomes),
            "step": self.step,
            "remainingDepth": self.remaining_depth,
        }


@dataclass(frozen=True)
class RefinedDiagnosis:
    """Final diagnosis after the confirmatory examination."""
    final_diagnosis: str
    provisional_diagnosis: str
    provisional_confidence: int
    confidence: int
    tier: ConfidenceTier
    revised: bool
    tests_performed: List[dict] = field(default_factory=list)
    tests_skipped: List[dict] = field(default_factory=list)
    supporting_tests: List[str] = field(default_factory=list)
    contrary_evidence: List[str] = field(default_factory=list)
    ruled_out: List[str] = field(default_factory=list)
    clinical_note: str = ""
    narrative: str = ""
    terminal_node_id: str = ""
    completion_reason: str = ALL_TESTS_COMPLETED
    completed_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "finalDiagnosis": self.final_diagnosis,
            "provisionalDiagnosis": self.provisional_diagnosis,
            "provisionalConfidence": self.provisional_confidence,
            "confidence": self.confidence,
            "tier": self.tier.value,
            "revised": self.revised,
            "testsPerformed": [dict(t) for t in self.tests_performed],
            "testsSkipped": [dict(t) for t in self.tests_skipped],
            "supportingTests": list(self.supporting_tests),
            "contraryEvidence": list(self.contrary_evidence),
            "ruledOut": list(self.ruled_out),
            "clinicalNote": self.clinical_note,
            "narrative": self.narrative,
            "terminalNodeId": self.terminal_node_id,
            "completionReason": self.completion_reason,
            "completedAt": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RefinedDiagnosis":
        return cls(
            final_diagnosis=data["finalDiagnosis"],
            provisional_diagnosis=data.get("provisionalDiagnosis", ""),
            provisional_confidence=int(data.get("provisionalConfidence", 0)),
            confidence=int(data.get("confidence", 0)),
            tier=ConfidenceTier(data.get("tier", ConfidenceTier.PROBABLE.value)),
            revised=bool(data.get("revised", False)),
            tests_performed=[dict(t) for t in data.get("testsPerformed") or []],
            tests_skipped=[dict(t) for t in data.get("testsSkipped") or []],
            supporting_tests=list(data.get("supportingTests") or []),
            contrary_evidence=list(data.get("contraryEvidence") or []),
            ruled_out=list(data.get("ruledOut") or []),
            clinical_note=data.get("clinicalNote", ""),
            narrative=data.get("narrative", ""),
            terminal_node_id=data.get("terminalNodeId", ""),
            completion_reason=data.get("completionReason") or ALL_TESTS_COMPLETED,
            completed_at=data.get("completedAt"),
        )


@dataclass(frozen=True)
class GuidedTestState:
    """
    Persisted guided-testing progress for one diagnosis session.

    `current_node_id` is derived: replaying `completed_tests` from the
    graph's start node always reproduces it.
    """
    region: str
    graph_version: str
    current_node_id: str
    completed_tests: List[CompletedTest] = field(default_factory=list)
    refined_diagnosis: Optional[RefinedDiagnosis] = None
    is_complete: bool = False
    is_locked: bool = False

    def to_dict(self) -> dict:
        return {
            "region": self.region,
            "graphVersion": self.graph_version,
            "currentNodeId": self.current_node_id,
            "completedTests": [t.to_dict() for t in self.completed_tests],
            "refinedDiagnosis": self.refined_diagnosis.to_dict() if self.refined_diagnosis else None,
            "isComplete": self.is_complete,
            "isLocked": self.is_locked,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GuidedTestState":
        refined = data.get("refinedDiagnosis")
        return cls(
            region=data["region"],
            graph_version=data.get("graphVersion", ""),
            current_node_id=data.get("currentNodeId", ""),
            completed_tests=[CompletedTest.from_dict(t) for t in data.get("completedTests") or []],
            refined_diagnosis=RefinedDiagnosis.from_dict(refined) if refined else None,
            is_complete=bool(data.get("isComplete", False)),
            is_locked=bool(data.get("isLocked", False)),
        )

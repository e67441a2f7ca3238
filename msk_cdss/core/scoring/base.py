"""
Heuristic Scoring - Base Types

Data contracts produced by the heuristic scorer and consumed by the
diagnosis service, the guided test engine and the HTTP layer.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

UNDETERMINED = "Undetermined"
ENGINE_VERSION = "2.0.0"


class RiskLevel(str, Enum):
    """
    Triage level of a provisional diagnosis.

    URGENT    – a red flag was raised; needs prompt clinical review
    MODERATE  – mid-band confidence or a moderate-risk pattern matched
    LOW       – routine follow-up
    """
    LOW      = "Low"
    MODERATE = "Moderate"
    URGENT   = "Urgent"


@dataclass
class DiagnosisCandidate:
    """
    Provisional ("temporal") diagnosis from the patient's intake answers.

    Plain data record: safe to serialise straight to the client.
    """
    # ── Core result ───────────────────────────────────────────────────────
    temporal_diagnosis: str
    base_confidence: int                 # 0-100, capped sum of matched weights
    confidence_score: int                # 0-100, after modifiers
    risk_level: RiskLevel
    reasoning: List[str] = field(default_factory=list)

    # ── Supporting detail ─────────────────────────────────────────────────
    differential_diagnoses: List[str] = field(default_factory=list)
    matched_patterns: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    red_flags: List[str] = field(default_factory=list)
    region: Optional[str] = None
    engine_version: str = ENGINE_VERSION

    @property
    def is_undetermined(self) -> bool:
        return self.temporal_diagnosis == UNDETERMINED

    def to_dict(self) -> dict:
        return {
            "temporalDiagnosis": self.temporal_diagnosis,
            "baseConfidence": self.base_confidence,
            "confidenceScore": self.confidence_score,
            "riskLevel": self.risk_level.value,
            "reasoning": list(self.reasoning),
            "differentialDiagnoses": list(self.differential_diagnoses),
            "matchedPatterns": list(self.matched_patterns),
            "recommendations": list(self.recommendations),
            "redFlags": list(self.red_flags),
            "region": self.region,
            "engineVersion": self.engine_version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DiagnosisCandidate":
        return cls(
            temporal_diagnosis=data.get("temporalDiagnosis", UNDETERMINED),
            base_confidence=int(data.get("baseConfidence", 0)),
            confidence_score=int(data.get("confidenceScore", 0)),
            risk_level=RiskLevel(data.get("riskLevel", RiskLevel.LOW.value)),
            reasoning=list(data.get("reasoning") or []),
            differential_diagnoses=list(data.get("differentialDiagnoses") or []),
            matched_patterns=list(data.get("matchedPatterns") or []),
            recommendations=list(data.get("recommendations") or []),
            red_flags=list(data.get("redFlags") or []),
            region=data.get("region"),
            engine_version=data.get("engineVersion", ENGINE_VERSION),
        )

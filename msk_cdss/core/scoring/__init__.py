"""
Heuristic Scoring

Usage:
    from msk_cdss.core.scoring import score

    candidate = score({"lumbar_q1": "Radiates down both legs"})
"""
from .base import ENGINE_VERSION, UNDETERMINED, DiagnosisCandidate, RiskLevel
from .heuristic import derive_tags, recommendations_for, score
from .patterns import (
    PATTERN_REGISTRY,
    DiagnosisPattern,
    HasTag,
    ResponseIs,
    get_patterns,
    validate_patterns,
    validate_registry,
)

__all__ = [
    "ENGINE_VERSION",
    "UNDETERMINED",
    "DiagnosisCandidate",
    "RiskLevel",
    "derive_tags",
    "recommendations_for",
    "score",
    "PATTERN_REGISTRY",
    "DiagnosisPattern",
    "HasTag",
    "ResponseIs",
    "get_patterns",
    "validate_patterns",
    "validate_registry",
]

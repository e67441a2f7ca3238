"""Clinician-guided confirmatory testing."""
from .base import (
    ALL_TESTS_COMPLETED,
    SKIPPED,
    CompletedTest,
    ConfidenceTier,
    GuidedTestState,
    RefinedDiagnosis,
    TestDescriptor,
    is_skip,
)
from .engine import GuidedTestEngine

__all__ = [
    "ALL_TESTS_COMPLETED",
    "SKIPPED",
    "CompletedTest",
    "ConfidenceTier",
    "GuidedTestState",
    "RefinedDiagnosis",
    "TestDescriptor",
    "is_skip",
    "GuidedTestEngine",
]

"""Patient intake questionnaire traversal."""
from .engine import IntakeBackResult, IntakeSessionState, IntakeTraversalEngine

__all__ = ["IntakeBackResult", "IntakeSessionState", "IntakeTraversalEngine"]

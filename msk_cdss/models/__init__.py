"""HTTP request/response schemas."""
from .schemas import (
    AnswerRequest,
    BackRequest,
    CompleteSessionRequest,
    CreateSessionRequest,
    ErrorResponse,
    HealthResponse,
    IntakeStateModel,
    RecordTestRequest,
    ScoreRequest,
    StartIntakeRequest,
)

__all__ = [
    "AnswerRequest",
    "BackRequest",
    "CompleteSessionRequest",
    "CreateSessionRequest",
    "ErrorResponse",
    "HealthResponse",
    "IntakeStateModel",
    "RecordTestRequest",
    "ScoreRequest",
    "StartIntakeRequest",
]

"""
API Request/Response Schemas

Pydantic models for the HTTP layer.  Field names are snake_case in Python
and camelCase on the wire, matching the `to_dict()` output of the domain
records.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from msk_cdss.core.intake import IntakeSessionState


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---- Intake ----

class IntakeStateModel(CamelModel):
    """Client-held questionnaire state, echoed back on every intake call."""
    selected_region: str
    current_node_id: Optional[str] = None
    history: List[str] = Field(default_factory=list)
    responses: Dict[str, str] = Field(default_factory=dict)
    red_flags: List[str] = Field(default_factory=list)
    is_complete: bool = False

    def to_state(self) -> IntakeSessionState:
        return IntakeSessionState.from_dict(self.model_dump(by_alias=True))

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"example": {
            "selectedRegion": "lumbar",
            "currentNodeId": "lumbar_q2",
            "history": ["lumbar_q1"],
            "responses": {"lumbar_q1": "Radiates down both legs"},
            "redFlags": ["cauda_equina_syndrome"],
            "isComplete": False,
        }},
    )


class StartIntakeRequest(CamelModel):
    region: str = Field(..., min_length=1)


class AnswerRequest(CamelModel):
    state: IntakeStateModel
    answer: str


class BackRequest(CamelModel):
    state: IntakeStateModel


class ScoreRequest(CamelModel):
    responses: Dict[str, str] = Field(default_factory=dict)
    red_flags: List[str] = Field(default_factory=list)
    region: Optional[str] = None


# ---- Sessions ----

class CreateSessionRequest(CamelModel):
    """Either a finished intake `state` or raw `responses` (+ region)."""
    state: Optional[IntakeStateModel] = None
    responses: Optional[Dict[str, str]] = None
    region: Optional[str] = None
    red_flags: List[str] = Field(default_factory=list)
    allow_partial: bool = False
    patient_id: Optional[str] = None


class RecordTestRequest(CamelModel):
    """`result` is Positive, Negative, Inconclusive or Skipped (notes give the reason)."""
    test_id: str
    result: str
    notes: str = ""
    clinician_id: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"example": {
            "testId": "ankle_thompson",
            "result": "Positive",
            "notes": "No plantarflexion on calf squeeze",
            "clinicianId": "therapist-042",
        }},
    )


class CompleteSessionRequest(CamelModel):
    clinician_id: Optional[str] = None
    reason: Optional[str] = None


# ---- Responses ----

class HealthResponse(CamelModel):
    status: str
    version: str
    timestamp: str
    uptime_seconds: float
    regions: List[str]
    ml: Dict[str, Any]


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

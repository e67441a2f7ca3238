"""
FastAPI endpoints for the patient intake questionnaire.

The questionnaire state lives with the client: every call receives the
current IntakeSessionState and returns the next one.
"""
from typing import Any, Dict

from fastapi import APIRouter

from msk_cdss.core.intake import IntakeBackResult, IntakeSessionState, IntakeTraversalEngine
from msk_cdss.core.rules import list_regions
from msk_cdss.core.scoring import score
from msk_cdss.models import AnswerRequest, BackRequest, ErrorResponse, ScoreRequest, StartIntakeRequest

router = APIRouter(
    prefix="/api/v1",
    tags=["Intake"],
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)

_engine = IntakeTraversalEngine()


def _step(state: IntakeSessionState) -> Dict[str, Any]:
    body = {
        "state": state.to_dict(),
        "question": _engine.current_question(state),
    }
    if state.is_complete:
        body["summary"] = _engine.summarize(state)
    return body


@router.get("/regions")
async def get_regions():
    """Body regions with which graph kinds each supports."""
    return {"regions": list_regions()}


@router.post("/intake/start")
async def start_intake(request: StartIntakeRequest):
    return _step(_engine.start(request.region))


@router.post("/intake/answer")
async def answer_question(request: AnswerRequest):
    """Record an answer; 422 when it is not an option of the current question."""
    return _step(_engine.answer(request.state.to_state(), request.answer))


@router.post("/intake/back")
async def go_back(request: BackRequest):
    """Step back one question, or signal a return to region selection."""
    result = IntakeBackResult(_engine.back(request.state.to_state()))
    body = result.to_dict()
    body["question"] = _engine.current_question(result.state) if result.state else None
    return body


@router.post("/intake/score")
async def score_responses(request: ScoreRequest):
    """Provisional diagnosis for a set of answers, without creating a session."""
    return score(request.responses, request.red_flags, request.region).to_dict()

"""
FastAPI endpoints for diagnosis sessions and clinician-guided testing.

Every guided-test request is served from the persisted test log; the
server keeps no per-session state between requests.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request

from msk_cdss.models import CompleteSessionRequest, CreateSessionRequest, ErrorResponse, RecordTestRequest
from msk_cdss.services import DiagnosisService

router = APIRouter(
    prefix="/api/v1/sessions",
    tags=["Sessions"],
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        423: {"model": ErrorResponse},
    },
)


def get_service(request: Request) -> DiagnosisService:
    return request.app.state.diagnosis_service


@router.post("", status_code=201)
async def create_session(
    request: CreateSessionRequest,
    service: DiagnosisService = Depends(get_service),
):
    """Score a finished intake and open a diagnosis session."""
    intake = request.state.to_state() if request.state is not None else (request.responses or {})
    record = service.submit_assessment(
        intake,
        region=request.region,
        red_flags=request.red_flags,
        allow_partial=request.allow_partial,
        patient_id=request.patient_id,
    )
    return record.to_dict()


@router.get("/{session_id}")
async def get_session(session_id: str, service: DiagnosisService = Depends(get_service)):
    return service.get_session(session_id).to_dict()


@router.get("/{session_id}/ml")
async def ml_insights(session_id: str, service: DiagnosisService = Depends(get_service)):
    """Placeholder model output; always reports unavailable beside the heuristic result."""
    return service.ml_insights(session_id)


@router.get("/{session_id}/guided-test")
async def guided_test_status(session_id: str, service: DiagnosisService = Depends(get_service)):
    """Current test for the clinician; idempotent, safe to retry."""
    return service.guided_status(session_id)


@router.post("/{session_id}/guided-test")
async def record_guided_test(
    session_id: str,
    request: RecordTestRequest,
    service: DiagnosisService = Depends(get_service),
):
    """
    Record one test result, or "Skipped" to log the test as not performed.

    409 when `testId` is not the current test (stale client) or the log no
    longer replays; 423 once the session is locked.
    """
    return service.record_test_result(
        session_id,
        request.test_id,
        request.result,
        notes=request.notes,
        clinician_id=request.clinician_id,
    )


@router.put("/{session_id}/guided-test")
async def complete_guided_test(
    session_id: str,
    request: Optional[CompleteSessionRequest] = None,
    service: DiagnosisService = Depends(get_service),
):
    """Finalize and lock the session; 423 if it was already finalized."""
    clinician_id = request.clinician_id if request else None
    reason = request.reason if request else None
    refined = service.complete_session(session_id, clinician_id=clinician_id, reason=reason)
    status = service.guided_status(session_id)
    return {"refinedDiagnosis": refined.to_dict(), **status}

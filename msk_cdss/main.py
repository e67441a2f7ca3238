"""
MSK Diagnosis Decision Engine - FastAPI Application

Main application entry point with API endpoints for:
- Patient intake questionnaire (region graphs, answers, back-navigation)
- Heuristic provisional diagnosis
- Diagnosis sessions and clinician-guided confirmatory testing

Run with:
    uvicorn msk_cdss.main:app --reload
"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from msk_cdss.config import settings
from msk_cdss.core.ml import MLBridge
from msk_cdss.core.rules import list_regions, validate_all
from msk_cdss.core.scoring import validate_registry
from msk_cdss.models import HealthResponse
from msk_cdss.routes import intake, sessions
from msk_cdss.services import DiagnosisService
from msk_cdss.utils import get_logger, setup_logging
from msk_cdss.utils.exceptions import (
    CDSSError,
    ConcurrentUpdateError,
    GraphDesyncError,
    IncompleteSessionError,
    InvalidAnswerError,
    SessionLockedError,
    SessionNotFoundError,
    StaleTestError,
    UnknownRegionError,
)

logger = get_logger(__name__)

# Domain error → HTTP status.  Looked up along the exception's MRO; anything
# unmapped (malformed rule data) is a server error.
ERROR_STATUS = {
    UnknownRegionError: 400,
    InvalidAnswerError: 422,
    GraphDesyncError: 409,
    StaleTestError: 409,
    SessionLockedError: 423,
    ConcurrentUpdateError: 409,
    SessionNotFoundError: 404,
    IncompleteSessionError: 409,
}

START_TIME = datetime.now()


def status_for(exc: CDSSError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


# ---- Application Lifespan ----

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and validate every rule graph and pattern before serving."""
    setup_logging(
        settings.log_level,
        settings.log_file,
        file_format=settings.log_file_format,
        use_color=settings.log_color,
        json_lines=settings.log_json,
    )
    loaded = validate_all()
    validate_registry()
    logger.info(f"Rule graphs validated for regions: {', '.join(sorted(loaded))}")
    logger.info("API ready to accept requests")
    yield
    logger.info(f"{settings.app_name} shut down.")


async def cdss_error_handler(request: Request, exc: CDSSError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} -> {status}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} -> {status} {exc.code}: {exc.message}")
    return JSONResponse(status_code=status, content=exc.to_dict())


def create_app(service: Optional[DiagnosisService] = None) -> FastAPI:
    """Build the application; tests pass their own service for isolation."""
    application = FastAPI(
        title=settings.app_name,
        description="Musculoskeletal intake, heuristic diagnosis and guided confirmatory testing",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.state.diagnosis_service = service or DiagnosisService()
    application.state.ml_bridge = application.state.diagnosis_service.ml_bridge

    application.add_exception_handler(CDSSError, cdss_error_handler)
    application.include_router(intake.router)
    application.include_router(sessions.router)

    @application.get("/api/v1/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        bridge: MLBridge = application.state.ml_bridge
        return HealthResponse(
            status="healthy",
            version=settings.app_version,
            timestamp=datetime.now().isoformat(),
            uptime_seconds=(datetime.now() - START_TIME).total_seconds(),
            regions=[r["id"] for r in list_regions()],
            ml=bridge.health(),
        )

    return application


app = create_app()


# ---- Run with uvicorn ----
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

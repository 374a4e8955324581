"""
App Orchestration - FastAPI Application

HTTP entry point for building, snapshotting and destroying the configured
application and for switching its maintenance mode.
"""

from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from app_orchestration import __version__
from app_orchestration.errors import (
    ConfigurationError,
    ConflictError,
    ExternalToolError,
    OrchestrationError,
    PreconditionError,
    ResourceExhaustedError,
    StateError,
)
from app_orchestration.models import (
    BuildRequest,
    DestroyRequest,
    MaintenanceResponse,
    RunResponse,
    SnapshotRequest,
)
from app_orchestration.orchestrator import Orchestrator, get_orchestrator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS_CODES = [
    (ConflictError, status.HTTP_409_CONFLICT),
    (ResourceExhaustedError, status.HTTP_507_INSUFFICIENT_STORAGE),
    (PreconditionError, status.HTTP_412_PRECONDITION_FAILED),
    (ConfigurationError, status.HTTP_400_BAD_REQUEST),
    (StateError, status.HTTP_409_CONFLICT),
    (ExternalToolError, status.HTTP_502_BAD_GATEWAY),
]


# =============================================================================
# APPLICATION SETUP
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("App Orchestration starting...")
    yield
    logger.info("App Orchestration shutting down...")


app = FastAPI(
    title="App Orchestration",
    description="""
    ## Declarative Application Lifecycle Orchestration

    This API provides endpoints for:
    - **Building** the application from its repository
    - **Taking snapshots** of databases and assets
    - **Destroying** deployments and their databases
    - **Maintenance mode** control

    Every operation runs a plan from the application configuration
    (`APP_ORCHESTRATION_CONFIG`).
    """,
    version=__version__,
    lifespan=lifespan,
)


def _run_response(result: dict) -> RunResponse:
    return RunResponse(
        status="reused" if result.get("reused") else "completed",
        reused=bool(result.get("reused")),
        artifact=result.get("artifact") or result.get("saved_to"),
        context=result,
    )


# =============================================================================
# API ENDPOINTS
# =============================================================================

@app.get("/", tags=["Health"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": "App Orchestration",
        "version": __version__,
        "status": "running",
        "endpoints": {
            "build": "POST /build",
            "snapshot": "POST /snapshots",
            "destroy": "POST /destroy",
            "maintenance": "GET /maintenance",
        },
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.post("/build", response_model=RunResponse, tags=["Lifecycle"], summary="Build the application")
async def build(
    request: BuildRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> RunResponse:
    """
    Run a build plan.

    **Request Body:**
    - `plan`: Build plan name (default plan when omitted)
    - `repo_reference`: Branch, tag or commit
    - `build_id`: Build identifier (generated when omitted)
    - `save_path`: Where the build is stored
    """
    result = await run_in_threadpool(
        orchestrator.builder.build,
        plan_name=request.plan,
        repo_reference=request.repo_reference,
        build_id=request.build_id,
        save_path=request.save_path,
    )
    return _run_response(result)


@app.post("/snapshots", response_model=RunResponse, tags=["Lifecycle"], summary="Take a snapshot")
async def take_snapshot(
    request: SnapshotRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> RunResponse:
    """
    Run a snapshot plan.

    An existing snapshot with the same name is reused unless `replace` is true.
    """
    result = await run_in_threadpool(
        orchestrator.snapshot_taker.take_snapshot,
        plan_name=request.plan,
        snapshot_name=request.snapshot_name,
        snapshot_path=request.snapshot_path,
        branch=request.branch,
        include_databases=request.include_databases,
        include_assets=request.include_assets,
        replace=request.replace,
        asset_sync_config=request.asset_sync_config,
    )
    return _run_response(result)


@app.post("/destroy", tags=["Lifecycle"], summary="Destroy the application")
async def destroy(
    request: DestroyRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """
    Remove the application's files and drop its databases.

    **Warning:** This action cannot be undone.
    """
    return await run_in_threadpool(orchestrator.destroyer.destroy, request.branch)


@app.get("/maintenance", response_model=MaintenanceResponse, tags=["Maintenance"])
async def maintenance_status(orchestrator: Orchestrator = Depends(get_orchestrator)) -> MaintenanceResponse:
    """Get maintenance mode state."""
    return MaintenanceResponse(enabled=orchestrator.maintenance.is_enabled())


@app.post("/maintenance/enable", response_model=MaintenanceResponse, tags=["Maintenance"])
async def enable_maintenance(orchestrator: Orchestrator = Depends(get_orchestrator)) -> MaintenanceResponse:
    """Put the application into maintenance mode."""
    orchestrator.maintenance.enable()
    return MaintenanceResponse(enabled=orchestrator.maintenance.is_enabled())


@app.post("/maintenance/disable", response_model=MaintenanceResponse, tags=["Maintenance"])
async def disable_maintenance(orchestrator: Orchestrator = Depends(get_orchestrator)) -> MaintenanceResponse:
    """Take the application out of maintenance mode."""
    orchestrator.maintenance.disable()
    return MaintenanceResponse(enabled=orchestrator.maintenance.is_enabled())


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrchestrationError)
async def orchestration_exception_handler(request: Request, exc: OrchestrationError):
    """Map orchestration errors to HTTP status codes."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_class, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_class):
            status_code = code
            break

    logger.error(f"{type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={
            "error": type(exc).__name__,
            "detail": exc.message,
            "errors": exc.errors,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc),
        },
    )


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app_orchestration.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )

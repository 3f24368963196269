"""
Admin Service Main Application

FastAPI application for the admin control plane: audience-targeted
broadcasts and system settings with Remote Config sync.
Port: 8260
"""

import logging
import os
import time
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from core.config_manager import ConfigManager
from core.logger import setup_service_logger

from .broadcast_service import BroadcastService
from .factory import AdminServiceFactory
from .models import (
    BroadcastCreateRequest,
    BroadcastDetailResponse,
    BroadcastListResponse,
    BroadcastResponse,
    HealthResponse,
    LivenessResponse,
    ReadinessResponse,
    ScheduledRunResponse,
    SettingsResponse,
    SettingsUpdateRequest,
    SettingsUpdateResponse,
)
from .protocols import (
    AdminServiceError,
    AuthError,
    ConflictError,
    InvalidBroadcastStateError,
    NotFoundError,
    TransientServiceError,
    UpstreamServiceError,
    ValidationError,
)
from .routes_registry import SERVICE_METADATA, get_route_summary
from .settings_service import SettingsService

logger = logging.getLogger(__name__)

# Service configuration
SERVICE_NAME = SERVICE_METADATA["service_name"]
SERVICE_PORT = int(os.getenv("SERVICE_PORT", "8260"))
SERVICE_VERSION = SERVICE_METADATA["version"]

# Track startup time for uptime calculation
startup_time = time.time()

# Global factory instance
factory: Optional[AdminServiceFactory] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global factory

    setup_service_logger(SERVICE_NAME)
    logger.info(f"Starting {SERVICE_NAME} on port {SERVICE_PORT}")

    # Initialize factory
    config = ConfigManager(SERVICE_NAME)
    factory = AdminServiceFactory(config)
    await factory.initialize()

    if config.settings.broadcast.scheduler_enabled:
        factory.poller.start()
    else:
        logger.info("Scheduled broadcast poller disabled")

    logger.info(f"Serving routes: {get_route_summary()['routes']}")

    yield

    # Cleanup
    logger.info(f"Shutting down {SERVICE_NAME}")
    await factory.close()
    factory = None


# Create FastAPI application
app = FastAPI(
    title="Admin Service",
    description="Admin control plane for broadcast notifications and remote configuration",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)


# ====================
# Exception Handlers
# ====================


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@app.exception_handler(InvalidBroadcastStateError)
async def invalid_state_handler(request: Request, exc: InvalidBroadcastStateError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "detail": str(exc),
            "status": exc.current_status.value if exc.current_status else None,
        },
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "code": exc.code},
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": str(exc), "code": exc.code},
    )


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc), "code": exc.code},
    )


@app.exception_handler(TransientServiceError)
async def transient_error_handler(request: Request, exc: TransientServiceError):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc), "code": exc.code},
    )


@app.exception_handler(UpstreamServiceError)
async def upstream_error_handler(request: Request, exc: UpstreamServiceError):
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": str(exc), "code": exc.code},
    )


@app.exception_handler(AdminServiceError)
async def admin_service_error_handler(request: Request, exc: AdminServiceError):
    logger.error(f"Admin service error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "code": exc.code},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler"""
    error_traceback = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(f"Unhandled exception: {exc}\n{error_traceback}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": str(exc),
            "type": type(exc).__name__,
        },
    )


# ====================
# Dependencies
# ====================


def get_broadcast_service() -> BroadcastService:
    """Get broadcast service from factory"""
    if not factory:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return factory.broadcast_service


def get_settings_service() -> SettingsService:
    """Get settings service from factory"""
    if not factory:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return factory.settings_service


def get_auth_context(request: Request) -> dict:
    """Extract auth context from request headers"""
    return {
        "user_id": request.headers.get("X-User-ID", "system"),
    }


# ====================
# Health Endpoints
# ====================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    dependencies = {}

    if factory:
        try:
            db_healthy = await factory.repository.health_check()
            dependencies["postgres"] = "healthy" if db_healthy else "unhealthy"
        except Exception:
            dependencies["postgres"] = "unhealthy"

        if factory.nats_client:
            dependencies["nats"] = "healthy" if factory.nats_client.is_connected else "unhealthy"
        else:
            dependencies["nats"] = "not_configured"

    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        port=SERVICE_PORT,
        version=SERVICE_VERSION,
        dependencies=dependencies,
    )


@app.get("/health/ready", response_model=ReadinessResponse, tags=["Health"])
async def readiness_check():
    """Readiness check endpoint"""
    checks = {}
    details = {}

    if factory:
        try:
            db_healthy = await factory.repository.health_check()
            checks["database"] = db_healthy
            details["database"] = "Connected" if db_healthy else "Connection failed"
        except Exception as e:
            checks["database"] = False
            details["database"] = str(e)

        if factory.nats_client:
            checks["nats"] = factory.nats_client.is_connected
            details["nats"] = "Connected" if factory.nats_client.is_connected else "Disconnected"
        else:
            checks["nats"] = True  # Optional
            details["nats"] = "Not configured (optional)"
    else:
        checks["factory"] = False
        details["factory"] = "Factory not initialized"

    ready = all(checks.get(k, False) for k in ["database"])

    return ReadinessResponse(
        ready=ready,
        checks=checks,
        details=details,
    )


@app.get("/health/live", response_model=LivenessResponse, tags=["Health"])
async def liveness_check():
    """Liveness check endpoint"""
    return LivenessResponse(
        alive=True,
        uptime_seconds=time.time() - startup_time,
    )


# ====================
# Broadcast Endpoints
# ====================


@app.post(
    "/api/v1/admin/notifications",
    response_model=BroadcastResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Broadcasts"],
)
async def create_broadcast(
    request: BroadcastCreateRequest,
    service: BroadcastService = Depends(get_broadcast_service),
    auth: dict = Depends(get_auth_context),
):
    """
    Create a broadcast notification

    Sent immediately unless `scheduledFor` is given, in which case it is
    stored as scheduled and picked up by the poller.
    """
    return await service.create_broadcast(request, sent_by=auth["user_id"])


@app.get(
    "/api/v1/admin/notifications",
    response_model=BroadcastListResponse,
    tags=["Broadcasts"],
)
async def list_broadcasts(
    limit: int = Query(100, ge=1, le=100, description="Maximum broadcasts to return"),
    service: BroadcastService = Depends(get_broadcast_service),
):
    """List broadcasts, newest first"""
    notifications = await service.list_broadcasts(limit=limit)
    return BroadcastListResponse(notifications=notifications)


# Declared before /{notification_id} so the literal path wins
@app.post(
    "/api/v1/admin/notifications/process-scheduled",
    response_model=ScheduledRunResponse,
    tags=["Broadcasts"],
)
async def process_scheduled_broadcasts(
    service: BroadcastService = Depends(get_broadcast_service),
):
    """Send every scheduled broadcast that is due"""
    return await service.process_scheduled()


@app.get(
    "/api/v1/admin/notifications/{notification_id}",
    response_model=BroadcastDetailResponse,
    tags=["Broadcasts"],
)
async def get_broadcast(
    notification_id: str,
    service: BroadcastService = Depends(get_broadcast_service),
):
    """Get broadcast by ID"""
    notification = await service.get_broadcast(notification_id)
    return BroadcastDetailResponse(notification=notification)


@app.post(
    "/api/v1/admin/notifications/{notification_id}/send",
    response_model=BroadcastResponse,
    tags=["Broadcasts"],
)
async def send_broadcast(
    notification_id: str,
    service: BroadcastService = Depends(get_broadcast_service),
):
    """Send a draft broadcast"""
    return await service.send_broadcast(notification_id)


# ====================
# Settings Endpoints
# ====================


@app.get(
    "/api/v1/admin/settings",
    response_model=SettingsResponse,
    tags=["Settings"],
)
async def get_settings(
    service: SettingsService = Depends(get_settings_service),
):
    """Get system settings"""
    settings = await service.get_settings()
    return SettingsResponse(settings=settings)


@app.post(
    "/api/v1/admin/settings",
    response_model=SettingsUpdateResponse,
    response_model_exclude_none=True,
    tags=["Settings"],
)
async def update_settings(
    request: SettingsUpdateRequest,
    service: SettingsService = Depends(get_settings_service),
    auth: dict = Depends(get_auth_context),
):
    """
    Update system settings

    Only the sections present in the body are written. Feature flags,
    remote config values and maintenance mode are then published to
    Remote Config; a failed publish is reported as `warning` with
    `remoteConfigError` while the save itself stands.
    """
    return await service.update_settings(request, updated_by=auth["user_id"])


def main():
    """Run the service"""
    import uvicorn

    uvicorn.run(
        "microservices.admin_service.main:app",
        host="0.0.0.0",
        port=SERVICE_PORT,
        reload=True,
        log_level="info",
    )


if __name__ == "__main__":
    main()

"""FastAPI application entry point.

Creates the application with:
- Middleware (CORS, RequestID, Timing, ErrorLogging, SecurityHeaders)
- Exception handlers (APIException, HTTPException, RequestValidationError, general)
- API routers (v1)
- Health check endpoints (/health, /ready)
- Startup/shutdown of the database pool and the session event publisher
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from yari_api import __version__
from yari_api.api.v1.router import router as v1_router
from yari_api.config import get_settings
from yari_api.database import check_connection, close_db, init_db
from yari_api.exceptions import APIException
from yari_api.middleware import setup_middleware
from yari_api.services.session_events import publisher as session_event_publisher
from yari_api.utils.logging import get_logger, log_error, setup_logging

# Set up logging first
setup_logging()
logger = get_logger("main")

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database pool and, when enabled, the RabbitMQ event publisher."""
    logger.info("Starting Yari API service...")
    await init_db()

    app.state.session_event_publisher = None
    if settings.rabbitmq.events_enabled:
        try:
            await session_event_publisher.connect()
            app.state.session_event_publisher = session_event_publisher
        except Exception as e:
            # Transitions still commit; events are retried lazily on the next publish
            logger.error(f"Failed to connect session event publisher: {e}", exc_info=True)
    else:
        logger.info("Session events disabled (RABBITMQ_EVENTS_ENABLED=false)")

    logger.info("Yari API service started")
    try:
        yield
    finally:
        logger.info("Shutting down Yari API service...")
        try:
            await session_event_publisher.close()
        except Exception as e:
            logger.error(f"Error closing session event publisher: {e}", exc_info=True)
        await close_db()
        logger.info("Yari API service shut down")


app = FastAPI(
    title="Yari API",
    description="Expert availability, session booking and session lifecycle API.",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    debug=settings.debug,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "availability", "description": "Expert availability settings and slots"},
        {"name": "sessions", "description": "Booking and the session lifecycle"},
        {"name": "calendar", "description": "Calendar view of a user's sessions"},
        {"name": "jobs", "description": "Internal scheduled jobs"},
        {"name": "v1", "description": "API v1 information and metadata"},
    ],
)

setup_middleware(app)
app.include_router(v1_router)


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle custom API exceptions."""
    context = {
        "method": request.method,
        "path": request.url.path,
        "status_code": exc.status_code,
        "code": exc.code,
    }
    if exc.status_code >= 500:
        log_error(exc, context=context)
    else:
        # Conflicts and rejected transitions are expected outcomes, not faults
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}", extra=context)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions (401/403 from auth dependencies, 404, etc.)."""
    logger.warning(
        f"{exc.status_code} {request.method} {request.url.path}: {exc.detail}",
        extra={"method": request.method, "path": request.url.path, "status_code": exc.status_code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "code": "HTTP_ERROR",
                "status_code": exc.status_code,
                "details": {},
            }
        },
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", [])),
            "message": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]

    logger.warning(
        f"Validation error: {request.method} {request.url.path}",
        extra={"method": request.method, "path": request.url.path, "validation_errors": errors},
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "message": "Validation failed",
                "code": "VALIDATION_ERROR",
                "status_code": 422,
                "details": {"validation_errors": errors},
            }
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    log_error(exc, context={"method": request.method, "path": request.url.path, "unhandled": True})

    # Don't expose internal error details in production
    message = "An internal server error occurred" if settings.is_production else str(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": message,
                "code": "INTERNAL_SERVER_ERROR",
                "status_code": 500,
                "details": {} if settings.is_production else {"exception_type": type(exc).__name__},
            }
        },
    )


@app.get("/health")
async def health_check():
    """Liveness probe."""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
        "version": __version__,
    }


@app.get("/ready")
async def readiness_check():
    """Readiness probe: the database must answer."""
    if not await check_connection():
        logger.warning("Readiness check failed: database not connected")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "database": "disconnected"},
        )
    return {"status": "ready", "database": "connected"}

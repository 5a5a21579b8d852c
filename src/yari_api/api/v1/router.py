"""API v1 router aggregation.

All v1 endpoints are prefixed with `/api/v1`.

Routers included:
- Availability (`/api/v1/availability/*`): expert settings and slots
- Sessions (`/api/v1/sessions/*`): booking and lifecycle
- Calendar (`/api/v1/calendar/*`)
- Jobs (`/api/v1/jobs/*`): internal, X-Internal-API-Key

Authentication:
- User endpoints require a bearer token (`get_current_principal`)
- Job endpoints use the internal API key (`InternalAuthDep`)
"""

from fastapi import APIRouter

from yari_api.api.v1 import availability, calendar, jobs, sessions

# Create v1 API router with version prefix
router = APIRouter(
    prefix="/api/v1",
    tags=["v1"],
    responses={
        404: {"description": "Not found"},
        422: {"description": "Validation error"},
        500: {"description": "Internal server error"},
    },
)

router.include_router(availability.router)
router.include_router(sessions.router)
router.include_router(calendar.router)
router.include_router(jobs.router)


@router.get(
    "/",
    summary="API Information",
    description="Get API version and status information",
    tags=["v1"],
)
async def api_info():
    """Return the API version and its endpoint groups (public)."""
    return {
        "version": "v1",
        "status": "active",
        "endpoints": {
            "availability": "/api/v1/availability",
            "sessions": "/api/v1/sessions",
            "calendar": "/api/v1/calendar",
            "jobs": "/api/v1/jobs",
        },
    }

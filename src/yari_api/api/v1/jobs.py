"""Internal job endpoints (triggered by workers; require internal API key)."""

import logging

from fastapi import APIRouter, status

from yari_api.auth.internal_service import InternalAuthDep
from yari_api.database.session import get_session_context
from yari_api.models.sessions import CompleteElapsedResponse
from yari_api.services.session_lifecycle_service import get_session_lifecycle_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post(
    "/complete-elapsed-sessions",
    response_model=CompleteElapsedResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete elapsed sessions",
    description=(
        "Moves every confirmed session whose scheduled end has passed to completed. "
        "Intended to be called periodically by a scheduler. Requires X-Internal-API-Key."
    ),
    dependencies=[InternalAuthDep],
)
async def complete_elapsed_sessions() -> CompleteElapsedResponse:
    """Run the completion sweep."""
    async with get_session_context() as session:
        service = get_session_lifecycle_service(session)
        completed = await service.complete_elapsed()
    logger.info(f"Completion job finished: {len(completed)} session(s)")
    return CompleteElapsedResponse(completed=len(completed), session_ids=completed)

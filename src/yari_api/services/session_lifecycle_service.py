"""Session lifecycle: confirm, decline, cancel and complete.

Every transition is a compare-and-set on the session status (see
``session_state.TRANSITIONS``). Cancelling transitions release the source slot
in the same transaction; events go out only after the commit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from yari_api.database.models import ExpertSession, SessionStatus
from yari_api.database.session import unit_of_work
from yari_api.exceptions import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from yari_api.models.auth import Principal
from yari_api.repositories.sessions_repository import SessionsRepository
from yari_api.repositories.slots_repository import SlotsRepository
from yari_api.services.meeting_links import generate_meeting_link
from yari_api.services.session_events import (
    SessionCancelledEvent,
    SessionConfirmedEvent,
    SessionEventPublisher,
    publish_after_commit,
)
from yari_api.services.session_state import (
    TRANSITIONS,
    Performer,
    SessionAction,
    Transition,
    resolve_transition,
)
from yari_api.utils.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def session_end(session: ExpertSession) -> datetime:
    """Scheduled end of a session (UTC)."""
    return ensure_utc(session.scheduled_at) + timedelta(minutes=session.duration_minutes)


class SessionLifecycleService:
    """Service driving sessions through the transition table."""

    def __init__(
        self,
        session: AsyncSession,
        publisher: Optional[SessionEventPublisher] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._sessions = SessionsRepository(session)
        self._slots = SlotsRepository(session)
        self._publisher = publisher
        self._clock = clock

    async def get_session(self, actor: Principal, session_id: str) -> ExpertSession:
        """Return a session the actor takes part in."""
        found = await self._load(session_id)
        if actor.user_id not in (found.expert_id, found.client_id) and not actor.is_admin:
            # Hide sessions of other users
            raise NotFoundError("Session", session_id)
        return found

    async def list_sessions(
        self,
        actor: Principal,
        role: Optional[str] = None,
        status: Optional[SessionStatus] = None,
    ) -> List[ExpertSession]:
        """
        List the actor's sessions, newest first.

        Args:
            actor: Calling user
            role: ``expert`` or ``client`` to restrict which side the actor is on
            status: Optional status filter
        """
        if role not in (None, "expert", "client"):
            raise ValidationError("role must be 'expert' or 'client'", errors={"role": ["Unknown role"]})
        return await self._sessions.list_for_user(
            actor.user_id,
            as_expert=role in (None, "expert"),
            as_client=role in (None, "client"),
            status=status,
        )

    async def confirm(self, actor: Principal, session_id: str) -> ExpertSession:
        """Confirm a pending session and issue its meeting link."""
        current = await self._load(session_id)
        self._authorize(actor, current, TRANSITIONS[SessionAction.CONFIRM])
        resolve_transition(SessionAction.CONFIRM, current.status)
        link = generate_meeting_link(current.id)

        async with unit_of_work(self._session):
            current = await self._apply(
                current,
                SessionAction.CONFIRM,
                meeting_link=link,
                confirmed_at=ensure_utc(self._clock()),
            )

        logger.info(f"Session {session_id} confirmed by expert {actor.user_id}")
        await publish_after_commit(
            self._publisher,
            SessionConfirmedEvent(
                session_id=current.id,
                expert_id=current.expert_id,
                client_id=current.client_id,
                meeting_link=current.meeting_link,
                scheduled_at=ensure_utc(current.scheduled_at),
            ),
        )
        return current

    async def decline(
        self, actor: Principal, session_id: str, reason: Optional[str] = None
    ) -> ExpertSession:
        """Decline a pending session and re-open its slot."""
        return await self._cancel(actor, session_id, SessionAction.DECLINE, reason)

    async def cancel(
        self, actor: Principal, session_id: str, reason: Optional[str] = None
    ) -> ExpertSession:
        """Cancel a pending or confirmed session (either participant) and re-open its slot."""
        return await self._cancel(actor, session_id, SessionAction.CANCEL, reason)

    async def complete(self, session_id: str) -> ExpertSession:
        """
        Mark a confirmed session completed once its scheduled end has passed.

        Completing an already completed session returns it unchanged. The slot
        stays booked for audit.
        """
        current = await self._load(session_id)
        if current.status == SessionStatus.COMPLETED:
            return current
        now = ensure_utc(self._clock())
        if current.status == SessionStatus.CONFIRMED and session_end(current) > now:
            raise InvalidStateError(
                action=SessionAction.COMPLETE.value,
                current_status=current.status.value,
                message="Session has not ended yet",
                details={"ends_at": session_end(current).isoformat()},
            )
        resolve_transition(SessionAction.COMPLETE, current.status)

        async with unit_of_work(self._session):
            current = await self._apply(current, SessionAction.COMPLETE, completed_at=now)

        logger.info(f"Session {session_id} completed")
        return current

    async def complete_elapsed(self, now: Optional[datetime] = None) -> List[str]:
        """
        Complete every confirmed session whose end has passed.

        Returns:
            IDs of the sessions completed by this sweep
        """
        moment = ensure_utc(now or self._clock())
        candidates = await self._sessions.list_confirmed_started_before(moment)
        due_ids = [c.id for c in candidates if session_end(c) <= moment]

        completed: List[str] = []
        for session_id in due_ids:
            try:
                async with unit_of_work(self._session):
                    current = await self._load(session_id)
                    await self._apply(current, SessionAction.COMPLETE, completed_at=moment)
                completed.append(session_id)
            except InvalidStateError as e:
                # Cancelled between the scan and the write
                logger.info(f"Skipping completion of session {session_id}: {e.message}")

        logger.info(f"Completion sweep at {moment.isoformat()}: {len(completed)} session(s) completed")
        return completed

    async def update_notes(self, actor: Principal, session_id: str, notes: str) -> ExpertSession:
        """Replace the free-form notes of a session the actor takes part in."""
        current = await self.get_session(actor, session_id)
        async with unit_of_work(self._session):
            current.notes = notes
            updated = await self._sessions.save(current)
        return updated

    async def _cancel(
        self,
        actor: Principal,
        session_id: str,
        action: SessionAction,
        reason: Optional[str],
    ) -> ExpertSession:
        current = await self._load(session_id)
        self._authorize(actor, current, TRANSITIONS[action])
        transition = resolve_transition(action, current.status)

        async with unit_of_work(self._session):
            current = await self._apply(
                current,
                action,
                cancellation_reason=reason,
                cancelled_at=ensure_utc(self._clock()),
            )
            if transition.releases_slot and current.source_slot_id:
                released = await self._slots.release(current.source_slot_id, current.id)
                if not released:
                    logger.warning(
                        f"Slot {current.source_slot_id} was not held by session {current.id}; nothing released"
                    )

        logger.info(f"Session {session_id} {action.value}d by {actor.user_id}")
        await publish_after_commit(
            self._publisher, SessionCancelledEvent(session_id=current.id, reason=reason)
        )
        return current

    async def _apply(
        self, current: ExpertSession, action: SessionAction, **values: Any
    ) -> ExpertSession:
        """Run the compare-and-set for ``action`` and return the reloaded session."""
        transition = resolve_transition(action, current.status)
        moved = await self._sessions.transition(
            current.id, transition.sources, transition.target, **values
        )
        if not moved:
            # Someone else changed the status after we read it
            await self._session.refresh(current)
            raise InvalidStateError(action=action.value, current_status=current.status.value)
        await self._session.refresh(current)
        return current

    async def _load(self, session_id: str) -> ExpertSession:
        found = await self._sessions.get_by_id(session_id)
        if found is None:
            raise NotFoundError("Session", session_id)
        return found

    @staticmethod
    def _authorize(actor: Principal, current: ExpertSession, transition: Transition) -> None:
        action = transition.action
        performer = transition.performer
        details: Dict[str, Any] = {"session_id": current.id, "action": action.value}
        if performer == Performer.EXPERT and actor.user_id != current.expert_id:
            raise AuthorizationError(f"Only the session's expert can {action.value} it", details=details)
        if performer == Performer.PARTICIPANT and actor.user_id not in (
            current.expert_id,
            current.client_id,
        ):
            raise AuthorizationError(f"Only session participants can {action.value} it", details=details)


def get_session_lifecycle_service(
    session: AsyncSession, publisher: Optional[SessionEventPublisher] = None
) -> SessionLifecycleService:
    """Factory function to create a SessionLifecycleService instance."""
    return SessionLifecycleService(session, publisher=publisher)

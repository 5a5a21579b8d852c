"""Session lifecycle transition table.

pending -> confirmed | cancelled
confirmed -> completed | cancelled
completed and cancelled are terminal.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet

from yari_api.database.models import SessionStatus
from yari_api.exceptions import InvalidStateError


class SessionAction(str, Enum):
    """Operations that move a session between states."""

    CONFIRM = "confirm"
    DECLINE = "decline"
    CANCEL = "cancel"
    COMPLETE = "complete"


class Performer(str, Enum):
    """Who may trigger a transition."""

    EXPERT = "expert"
    PARTICIPANT = "participant"
    SYSTEM = "system"


@dataclass(frozen=True)
class Transition:
    """One row of the transition table."""

    action: SessionAction
    sources: FrozenSet[SessionStatus]
    target: SessionStatus
    performer: Performer

    @property
    def releases_slot(self) -> bool:
        return self.target == SessionStatus.CANCELLED


TRANSITIONS: Dict[SessionAction, Transition] = {
    SessionAction.CONFIRM: Transition(
        SessionAction.CONFIRM,
        frozenset({SessionStatus.PENDING}),
        SessionStatus.CONFIRMED,
        Performer.EXPERT,
    ),
    SessionAction.DECLINE: Transition(
        SessionAction.DECLINE,
        frozenset({SessionStatus.PENDING}),
        SessionStatus.CANCELLED,
        Performer.EXPERT,
    ),
    SessionAction.CANCEL: Transition(
        SessionAction.CANCEL,
        frozenset({SessionStatus.PENDING, SessionStatus.CONFIRMED}),
        SessionStatus.CANCELLED,
        Performer.PARTICIPANT,
    ),
    SessionAction.COMPLETE: Transition(
        SessionAction.COMPLETE,
        frozenset({SessionStatus.CONFIRMED}),
        SessionStatus.COMPLETED,
        Performer.SYSTEM,
    ),
}

TERMINAL_STATUSES: FrozenSet[SessionStatus] = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.CANCELLED}
)


def can_transition(action: SessionAction, current: SessionStatus) -> bool:
    """Check whether ``action`` is allowed from ``current``."""
    return current in TRANSITIONS[action].sources


def resolve_transition(action: SessionAction, current: SessionStatus) -> Transition:
    """Return the transition for ``action`` or raise InvalidStateError."""
    transition = TRANSITIONS[action]
    if current not in transition.sources:
        raise InvalidStateError(action=action.value, current_status=SessionStatus(current).value)
    return transition

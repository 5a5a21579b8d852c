"""Tests for the session transition table."""

import pytest

from yari_api.database.models import SessionStatus
from yari_api.exceptions import InvalidStateError
from yari_api.services.session_state import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    Performer,
    SessionAction,
    can_transition,
    resolve_transition,
)


@pytest.mark.parametrize(
    "action,current,target",
    [
        (SessionAction.CONFIRM, SessionStatus.PENDING, SessionStatus.CONFIRMED),
        (SessionAction.DECLINE, SessionStatus.PENDING, SessionStatus.CANCELLED),
        (SessionAction.CANCEL, SessionStatus.PENDING, SessionStatus.CANCELLED),
        (SessionAction.CANCEL, SessionStatus.CONFIRMED, SessionStatus.CANCELLED),
        (SessionAction.COMPLETE, SessionStatus.CONFIRMED, SessionStatus.COMPLETED),
    ],
)
def test_allowed_transitions(action, current, target):
    assert can_transition(action, current)
    assert resolve_transition(action, current).target == target


@pytest.mark.parametrize(
    "action,current",
    [
        (SessionAction.CONFIRM, SessionStatus.CONFIRMED),
        (SessionAction.DECLINE, SessionStatus.CONFIRMED),
        (SessionAction.COMPLETE, SessionStatus.PENDING),
        (SessionAction.CANCEL, SessionStatus.COMPLETED),
    ],
)
def test_rejected_transitions(action, current):
    assert not can_transition(action, current)
    with pytest.raises(InvalidStateError) as exc_info:
        resolve_transition(action, current)
    assert exc_info.value.details["current_status"] == current.value


@pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
def test_terminal_statuses_have_no_exits(terminal):
    for action in SessionAction:
        assert not can_transition(action, terminal)


def test_only_cancelling_transitions_release_the_slot():
    releasing = {action for action, t in TRANSITIONS.items() if t.releases_slot}
    assert releasing == {SessionAction.DECLINE, SessionAction.CANCEL}


def test_performers():
    assert TRANSITIONS[SessionAction.CONFIRM].performer == Performer.EXPERT
    assert TRANSITIONS[SessionAction.DECLINE].performer == Performer.EXPERT
    assert TRANSITIONS[SessionAction.CANCEL].performer == Performer.PARTICIPANT
    assert TRANSITIONS[SessionAction.COMPLETE].performer == Performer.SYSTEM

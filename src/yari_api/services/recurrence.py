"""Recurring slot expansion.

A recurring slot is stored as independent dated rows so each occurrence can be
booked, edited or deleted on its own. This module only computes the dates and
the column values for those rows; persistence stays in the slot service.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, time, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional

from yari_api.database.models import RecurrencePattern, SlotKind


@dataclass(frozen=True)
class SlotTemplate:
    """Column values shared by every occurrence of a slot."""

    expert_id: str
    date: date
    start_time: time
    end_time: time
    duration_minutes: int
    kind: SlotKind
    price: Decimal
    recurrence_pattern: RecurrencePattern = RecurrencePattern.NONE
    recur_until: Optional[date] = None
    notes: Optional[str] = None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_pattern != RecurrencePattern.NONE

    def row_for(self, occurrence: date) -> Dict[str, Any]:
        """Column values of the slot row on ``occurrence``."""
        return {
            "expert_id": self.expert_id,
            "date": occurrence,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_minutes": self.duration_minutes,
            "kind": self.kind,
            "price": self.price,
            "is_booked": False,
            "booked_session_id": None,
            "is_recurring": self.is_recurring,
            "recurrence_pattern": self.recurrence_pattern,
            "recur_until": self.recur_until,
            "notes": self.notes,
        }


def _monthly(start_date: date) -> Iterator[date]:
    year, month = start_date.year, start_date.month
    while True:
        month += 1
        if month > 12:
            year, month = year + 1, 1
        # Months without this day-of-month (e.g. the 31st) are skipped
        if start_date.day <= calendar.monthrange(year, month)[1]:
            yield date(year, month, start_date.day)


def _unbounded(start_date: date, pattern: RecurrencePattern) -> Iterator[date]:
    if pattern == RecurrencePattern.MONTHLY:
        yield from _monthly(start_date)
        return
    step = timedelta(days=1 if pattern == RecurrencePattern.DAILY else 7)
    current = start_date
    while True:
        current += step
        yield current


def expand_occurrences(
    start_date: date,
    pattern: RecurrencePattern,
    recur_until: Optional[date],
    horizon: date,
) -> Iterator[date]:
    """
    Lazily yield the occurrence dates that follow ``start_date``.

    Dates are strictly after ``start_date`` and no later than both
    ``recur_until`` and ``horizon`` (inclusive). A ``recur_until`` before the
    start date, or the ``none`` pattern, yields nothing.

    Args:
        start_date: Date of the template slot itself
        pattern: Repeat rule
        recur_until: Last date the pattern may produce
        horizon: Last date the expert accepts bookings for

    Yields:
        Occurrence dates in ascending order
    """
    if pattern == RecurrencePattern.NONE or recur_until is None:
        return
    last = min(recur_until, horizon)
    if last <= start_date:
        return
    for occurrence in _unbounded(start_date, pattern):
        if occurrence > last:
            return
        yield occurrence


def build_instances(template: SlotTemplate, horizon: date) -> List[Dict[str, Any]]:
    """Materialize the row values of every occurrence after the template's own date."""
    return [
        template.row_for(occurrence)
        for occurrence in expand_occurrences(
            template.date, template.recurrence_pattern, template.recur_until, horizon
        )
    ]

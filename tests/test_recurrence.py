"""Tests for recurring slot expansion."""

from datetime import date, time
from decimal import Decimal

from yari_api.database.models import RecurrencePattern, SlotKind
from yari_api.services.recurrence import SlotTemplate, build_instances, expand_occurrences

FAR_HORIZON = date(2030, 1, 1)


def _template(**overrides) -> SlotTemplate:
    values = dict(
        expert_id="expert-1",
        date=date(2024, 1, 1),
        start_time=time(9, 0),
        end_time=time(10, 0),
        duration_minutes=60,
        kind=SlotKind.PAID,
        price=Decimal("75.00"),
        recurrence_pattern=RecurrencePattern.WEEKLY,
        recur_until=date(2024, 1, 22),
    )
    values.update(overrides)
    return SlotTemplate(**values)


class TestExpandOccurrences:
    """Tests for occurrence date generation."""

    def test_weekly_until_inclusive(self):
        dates = list(
            expand_occurrences(date(2024, 1, 1), RecurrencePattern.WEEKLY, date(2024, 1, 22), FAR_HORIZON)
        )
        assert dates == [date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22)]

    def test_daily(self):
        dates = list(
            expand_occurrences(date(2024, 2, 27), RecurrencePattern.DAILY, date(2024, 3, 2), FAR_HORIZON)
        )
        assert dates == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1), date(2024, 3, 2)]

    def test_monthly_skips_short_months(self):
        dates = list(
            expand_occurrences(date(2024, 1, 31), RecurrencePattern.MONTHLY, date(2024, 6, 30), FAR_HORIZON)
        )
        assert dates == [date(2024, 3, 31), date(2024, 5, 31)]

    def test_monthly_across_year_end(self):
        dates = list(
            expand_occurrences(date(2024, 11, 15), RecurrencePattern.MONTHLY, date(2025, 2, 15), FAR_HORIZON)
        )
        assert dates == [date(2024, 12, 15), date(2025, 1, 15), date(2025, 2, 15)]

    def test_horizon_caps_expansion(self):
        dates = list(
            expand_occurrences(date(2024, 1, 1), RecurrencePattern.DAILY, date(2024, 12, 31), date(2024, 1, 4))
        )
        assert dates == [date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 4)]

    def test_until_before_start_yields_nothing(self):
        dates = list(
            expand_occurrences(date(2024, 1, 10), RecurrencePattern.WEEKLY, date(2024, 1, 1), FAR_HORIZON)
        )
        assert dates == []

    def test_none_pattern_yields_nothing(self):
        dates = list(expand_occurrences(date(2024, 1, 1), RecurrencePattern.NONE, date(2024, 2, 1), FAR_HORIZON))
        assert dates == []

    def test_missing_until_yields_nothing(self):
        assert list(expand_occurrences(date(2024, 1, 1), RecurrencePattern.DAILY, None, FAR_HORIZON)) == []


class TestBuildInstances:
    """Tests for the row values of recurrence instances."""

    def test_instances_copy_template_fields(self):
        rows = build_instances(_template(notes="office hours"), FAR_HORIZON)
        assert [row["date"] for row in rows] == [date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22)]
        for row in rows:
            assert row["start_time"] == time(9, 0)
            assert row["end_time"] == time(10, 0)
            assert row["price"] == Decimal("75.00")
            assert row["is_booked"] is False
            assert row["booked_session_id"] is None
            assert row["is_recurring"] is True
            assert row["recurrence_pattern"] == RecurrencePattern.WEEKLY
            assert row["notes"] == "office hours"

    def test_non_recurring_template_has_no_instances(self):
        template = _template(recurrence_pattern=RecurrencePattern.NONE, recur_until=None)
        assert template.is_recurring is False
        assert build_instances(template, FAR_HORIZON) == []

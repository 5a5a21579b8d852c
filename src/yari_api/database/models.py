"""SQLAlchemy database models."""

import uuid
import datetime as dt
from decimal import Decimal
from enum import Enum as _Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from yari_api.utils.timeutils import utcnow


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class SlotKind(str, _Enum):
    """What kind of session a slot offers."""

    FREE = "free"
    PAID = "paid"
    BLOCKED = "blocked"


class RecurrencePattern(str, _Enum):
    """Repeat rule of a recurring slot template."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SessionStatus(str, _Enum):
    """Closed set of session states; see services.session_state for the transitions."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def _enum_column(enum_cls: type[_Enum], name: str) -> Enum:
    # Persist lowercase values and reject unknown strings before they reach the database.
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=20,
        validate_strings=True,
        values_callable=lambda e: [m.value for m in e],
    )


def _new_id() -> str:
    return str(uuid.uuid4())


class AvailabilitySlot(Base):
    """A concrete, dated, timed unit of an expert's offered availability."""

    __tablename__ = "availability_slots"
    __table_args__ = (
        UniqueConstraint("expert_id", "date", "start_time", name="uq_availability_slots_expert_start"),
        Index("ix_availability_slots_expert_date", "expert_id", "date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id, index=True)
    expert_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # Wall-clock fields, interpreted in the expert's settings timezone
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    kind: Mapped[SlotKind] = mapped_column(_enum_column(SlotKind, "slot_kind"), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))

    # Booking state; is_booked is true exactly when booked_session_id is set
    is_booked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    booked_session_id: Mapped[Optional[str]] = mapped_column(String(36), unique=True, nullable=True)

    # Recurrence
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurrence_pattern: Mapped[RecurrencePattern] = mapped_column(
        _enum_column(RecurrencePattern, "recurrence_pattern"),
        default=RecurrencePattern.NONE,
        nullable=False,
    )
    recur_until: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        """String representation of AvailabilitySlot."""
        return (
            f"<AvailabilitySlot(id={self.id}, expert_id={self.expert_id}, "
            f"date={self.date}, start={self.start_time}, kind={self.kind}, booked={self.is_booked})>"
        )


class AvailabilitySettings(Base):
    """Per-expert booking defaults (one row per expert, never deleted)."""

    __tablename__ = "availability_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id, index=True)
    expert_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, index=True)

    offers_free_sessions: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    free_session_duration: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    default_paid_duration: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    default_paid_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("75.00"), nullable=False
    )
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)
    buffer_minutes: Mapped[int] = mapped_column(Integer, default=15, nullable=False)
    advance_booking_days: Mapped[int] = mapped_column(Integer, default=30, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        """String representation of AvailabilitySettings."""
        return f"<AvailabilitySettings(expert_id={self.expert_id}, timezone={self.timezone})>"


class ExpertSession(Base):
    """A booked meeting between one expert and one client, bound to one slot."""

    __tablename__ = "sessions"
    __table_args__ = (
        # At most one non-cancelled session may reference a slot
        Index(
            "uq_sessions_active_source_slot",
            "source_slot_id",
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
        Index("ix_sessions_expert_scheduled_at", "expert_id", "scheduled_at"),
        Index("ix_sessions_client_scheduled_at", "client_id", "scheduled_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id, index=True)
    expert_id: Mapped[str] = mapped_column(String(36), nullable=False)
    client_id: Mapped[str] = mapped_column(String(36), nullable=False)

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    scheduled_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    status: Mapped[SessionStatus] = mapped_column(
        _enum_column(SessionStatus, "session_status"),
        default=SessionStatus.PENDING,
        nullable=False,
        index=True,
    )
    meeting_link: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    source_slot_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("availability_slots.id", ondelete="SET NULL"), nullable=True
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    confirmed_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        """String representation of ExpertSession."""
        return f"<ExpertSession(id={self.id}, expert_id={self.expert_id}, status={self.status})>"

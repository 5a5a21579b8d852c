"""Pydantic models for availability slots and settings endpoints."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from yari_api.database.models import RecurrencePattern, SlotKind


class SlotCreateRequest(BaseModel):
    """Request model for publishing a slot (optionally a recurring template)."""

    date: dt.date = Field(..., description="Calendar date in the expert's timezone")
    start_time: dt.time = Field(..., description="Local wall-clock start time")
    end_time: Optional[dt.time] = Field(
        None, description="Local wall-clock end time (derived from settings when omitted)"
    )
    kind: SlotKind = Field(SlotKind.PAID, description="free, paid or blocked")
    price: Optional[Decimal] = Field(
        None, ge=0, description="Price (defaults to the expert's paid price for paid slots)"
    )
    is_recurring: bool = Field(False, description="Expand into dated instances")
    recurrence_pattern: RecurrencePattern = Field(
        RecurrencePattern.NONE, description="none, daily, weekly or monthly"
    )
    recur_until: Optional[dt.date] = Field(None, description="Last date (inclusive) of the recurrence")
    notes: Optional[str] = Field(None, max_length=500, description="Optional notes")


class SlotUpdateRequest(BaseModel):
    """Request model for editing an unbooked slot. Omitted fields keep their value."""

    date: Optional[dt.date] = Field(None, description="New calendar date")
    start_time: Optional[dt.time] = Field(None, description="New start time")
    end_time: Optional[dt.time] = Field(None, description="New end time")
    kind: Optional[SlotKind] = Field(None, description="New kind")
    price: Optional[Decimal] = Field(None, ge=0, description="New price")
    notes: Optional[str] = Field(None, max_length=500, description="New notes")


class SlotResponse(BaseModel):
    """Response model for an availability slot."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Slot ID")
    expert_id: str = Field(..., description="Owning expert ID")
    date: dt.date = Field(..., description="Calendar date")
    start_time: dt.time = Field(..., description="Start time (expert local)")
    end_time: dt.time = Field(..., description="End time (expert local)")
    duration_minutes: int = Field(..., description="Duration in minutes")
    kind: SlotKind = Field(..., description="Slot kind")
    price: Decimal = Field(..., description="Price")
    is_booked: bool = Field(..., description="Whether a session holds this slot")
    booked_session_id: Optional[str] = Field(None, description="Holding session ID")
    is_recurring: bool = Field(..., description="Created from a recurring template")
    recurrence_pattern: RecurrencePattern = Field(..., description="Recurrence pattern")
    recur_until: Optional[dt.date] = Field(None, description="Recurrence end date")
    notes: Optional[str] = Field(None, description="Notes")
    created_at: dt.datetime = Field(..., description="Created at timestamp")
    updated_at: dt.datetime = Field(..., description="Updated at timestamp")


class AvailabilitySettingsUpdateRequest(BaseModel):
    """Request model for updating an expert's availability settings."""

    offers_free_sessions: Optional[bool] = Field(None, description="Offer free sessions")
    free_session_duration: Optional[int] = Field(None, ge=15, le=60, description="Free session minutes")
    default_paid_duration: Optional[int] = Field(None, ge=30, le=180, description="Paid session minutes")
    default_paid_price: Optional[Decimal] = Field(None, ge=0, description="Default paid price")
    timezone: Optional[str] = Field(None, min_length=1, max_length=64, description="IANA timezone")
    buffer_minutes: Optional[int] = Field(None, ge=0, le=60, description="Gap between sessions")
    advance_booking_days: Optional[int] = Field(None, ge=1, le=90, description="Booking horizon")


class AvailabilitySettingsResponse(BaseModel):
    """Response model for availability settings."""

    model_config = ConfigDict(from_attributes=True)

    expert_id: str = Field(..., description="Expert ID")
    offers_free_sessions: bool = Field(..., description="Offers free sessions")
    free_session_duration: int = Field(..., description="Free session minutes")
    default_paid_duration: int = Field(..., description="Paid session minutes")
    default_paid_price: Decimal = Field(..., description="Default paid price")
    timezone: str = Field(..., description="IANA timezone")
    buffer_minutes: int = Field(..., description="Gap between sessions")
    advance_booking_days: int = Field(..., description="Booking horizon in days")

"""Pydantic models for session booking and lifecycle endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from yari_api.database.models import SessionStatus


class BookSessionRequest(BaseModel):
    """Request model for booking a slot."""

    expert_id: str = Field(..., min_length=1, description="Expert who owns the slot")
    slot_id: str = Field(..., min_length=1, description="Slot to book")
    title: str = Field(..., min_length=1, max_length=100, description="Session title")
    description: str = Field("", max_length=500, description="What the client wants to discuss")


class SessionActionRequest(BaseModel):
    """Optional body for decline/cancel."""

    reason: Optional[str] = Field(None, max_length=500, description="Cancellation reason")


class SessionNotesRequest(BaseModel):
    """Request model for updating session notes."""

    notes: str = Field(..., max_length=5000, description="Free-form notes")


class SessionResponse(BaseModel):
    """Response model for a session."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Session ID")
    expert_id: str = Field(..., description="Expert ID")
    client_id: str = Field(..., description="Client ID")
    title: str = Field(..., description="Title")
    description: str = Field(..., description="Description")
    duration_minutes: int = Field(..., description="Duration in minutes")
    price: Decimal = Field(..., description="Price")
    scheduled_at: datetime = Field(..., description="Start (UTC)")
    status: SessionStatus = Field(..., description="Lifecycle status")
    meeting_link: Optional[str] = Field(None, description="Meeting link (set once confirmed)")
    source_slot_id: Optional[str] = Field(None, description="Slot this session was booked from")
    notes: Optional[str] = Field(None, description="Notes")
    cancellation_reason: Optional[str] = Field(None, description="Why it was cancelled")
    confirmed_at: Optional[datetime] = Field(None, description="Confirmed at")
    cancelled_at: Optional[datetime] = Field(None, description="Cancelled at")
    completed_at: Optional[datetime] = Field(None, description="Completed at")
    created_at: datetime = Field(..., description="Created at timestamp")
    updated_at: datetime = Field(..., description="Updated at timestamp")


class CompleteElapsedResponse(BaseModel):
    """Response model for the completion sweep job."""

    completed: int = Field(..., description="Number of sessions moved to completed")
    session_ids: list[str] = Field(default_factory=list, description="IDs of completed sessions")

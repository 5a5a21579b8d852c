"""Pydantic models for calendar endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from yari_api.database.models import SessionStatus


class CalendarEvent(BaseModel):
    """A session rendered as a calendar entry for one participant."""

    session_id: str = Field(..., description="Session ID")
    title: str = Field(..., description="Session title")
    start: datetime = Field(..., description="Start (UTC)")
    end: datetime = Field(..., description="End (UTC)")
    status: SessionStatus = Field(..., description="Session status")
    meeting_link: Optional[str] = Field(None, description="Meeting link")
    is_expert: bool = Field(..., description="Whether the caller hosts this session")
    counterpart_id: str = Field(..., description="The other participant")

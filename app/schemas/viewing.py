"""
Pydantic schemas for viewing requests.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, time


class ViewingCreate(BaseModel):
    """Schedule a viewing."""

    scheduled_date: datetime = Field(..., description="Date (ISO 8601), optionally with a time")
    scheduled_time: Optional[time] = Field(None, description="Time of day, HH:MM")
    duration_minutes: Optional[int] = Field(None, ge=5, le=24 * 60)
    location_notes: Optional[str] = Field(None, max_length=2000)


class ViewingUpdate(BaseModel):
    """Partial viewing update, including the outcome after attending."""

    scheduled_date: Optional[datetime] = None
    scheduled_time: Optional[time] = None
    duration_minutes: Optional[int] = Field(None, ge=5, le=24 * 60)
    location_notes: Optional[str] = Field(None, max_length=2000)
    attended: Optional[bool] = None
    viewing_notes: Optional[str] = Field(None, max_length=5000)
    rating: Optional[int] = Field(None, ge=1, le=5, description="1 to 5")

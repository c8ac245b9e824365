"""Data models for parsed calendar events."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator


class EventStatus(str, Enum):
    """VEVENT STATUS values (NONE when absent or unrecognized)."""

    NONE = "NONE"
    TENTATIVE = "TENTATIVE"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class Transparency(str, Enum):
    """VEVENT TRANSP values; anything but TRANSPARENT blocks time."""

    OPAQUE = "OPAQUE"
    TRANSPARENT = "TRANSPARENT"


class ParticipationStatus(str, Enum):
    """ATTENDEE PARTSTAT values."""

    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    TENTATIVE = "TENTATIVE"
    NEEDS_ACTION = "NEEDS-ACTION"
    DELEGATED = "DELEGATED"


class CalendarEvent(BaseModel):
    """One VEVENT resolved to absolute instants.

    STATUS, TRANSP and PARTSTAT values are kept exactly as the feed wrote
    them; the enum properties normalize case when the filter reads them.
    """

    uid: str = Field(default="", description="UID, empty when the feed omits it")
    summary: str = Field(default="", description="Unescaped SUMMARY")
    location: str = Field(default="", description="Unescaped LOCATION")
    status: str = Field(default="", description="Raw STATUS value")
    transparency: str = Field(default="", description="Raw TRANSP value")
    attendee_responses: tuple[str, ...] = Field(
        default=(), description="PARTSTAT of each ATTENDEE line carrying one"
    )
    start: datetime = Field(..., description="Start instant (UTC)")
    end: datetime = Field(..., description="End instant (UTC)")
    is_all_day: bool = Field(default=False, description="DTSTART was a bare date")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_interval(self) -> "CalendarEvent":
        if self.end < self.start:
            raise ValueError("event end precedes start")
        return self

    @property
    def event_status(self) -> EventStatus:
        try:
            return EventStatus(self.status.strip().upper())
        except ValueError:
            return EventStatus.NONE

    @property
    def is_transparent(self) -> bool:
        return self.transparency.strip().upper() == Transparency.TRANSPARENT.value

    @property
    def has_declined(self) -> bool:
        """True when any attendee response is DECLINED."""
        return any(
            response.strip().upper() == ParticipationStatus.DECLINED.value
            for response in self.attendee_responses
        )

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()

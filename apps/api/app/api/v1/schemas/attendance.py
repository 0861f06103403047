from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import Field, model_validator

from app.api.v1.schemas.common import SchemaBase, UTCDateTime
from app.models.rsvp import RSVPStatus


class VerifyCheckInIn(SchemaBase):
    # JSON string as scanned; some clients post the parsed object instead
    qr_token: Any = None
    event_id: str | None = None
    user_id: str | None = None


class CheckInOut(SchemaBase):
    id: UUID
    user_id: UUID
    event_id: UUID
    check_in_time: UTCDateTime


class RSVPOut(SchemaBase):
    id: UUID
    user_id: UUID
    event_id: UUID
    status: RSVPStatus
    attended: bool


class VerifyCheckInOut(SchemaBase):
    msg: str
    check_in: CheckInOut
    rsvp: RSVPOut


class AlreadyCheckedInOut(SchemaBase):
    msg: str = "Already checked in"
    check_in_time: UTCDateTime


class CheckInStatusOut(SchemaBase):
    attended: bool
    check_in_time: UTCDateTime | None = None
    rsvpd: bool


class AttendanceStatsOut(SchemaBase):
    total_rsvps: int = Field(alias="totalRSVPs", ge=0)
    checked_in: int = Field(ge=0)
    attendance_rate: int = Field(ge=0)


class AttendanceEventOut(SchemaBase):
    id: UUID
    title: str
    description: str | None = None
    starts_at: UTCDateTime | None = None
    location: str | None = None
    organizer: str = "Unknown"
    category: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _organizer_name(cls, data: Any) -> Any:
        # ORM Event -> organizer display name
        if hasattr(data, "organizer_id"):
            organizer = getattr(data, "organizer", None)
            return {
                "id": data.id,
                "title": data.title,
                "description": data.description,
                "starts_at": data.starts_at,
                "location": data.location,
                "organizer": (organizer.name if organizer and organizer.name else "Unknown"),
                "category": data.category,
            }
        return data


class AttendanceRecordOut(SchemaBase):
    id: UUID
    check_in_time: UTCDateTime
    event: AttendanceEventOut


class UserAttendanceOut(SchemaBase):
    records: list[AttendanceRecordOut]
    total: int = Field(ge=0)
    limit: int = Field(ge=1)
    skip: int = Field(ge=0)


class AttendeeOut(SchemaBase):
    id: UUID
    name: str | None = None
    email: str
    roll_no: str | None = None
    year_section: str | None = None


class EventSummaryOut(SchemaBase):
    id: UUID
    title: str
    starts_at: UTCDateTime | None = None
    location: str | None = None


class CheckInDetailOut(SchemaBase):
    id: UUID
    check_in_time: UTCDateTime
    user: AttendeeOut
    event: EventSummaryOut
    qr_snapshot: dict[str, Any] | None = None


class QRTokenOut(SchemaBase):
    qr_token: str
    expires_at: UTCDateTime

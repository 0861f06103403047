from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import RSVP, CheckIn
from app.models.rsvp import RSVPStatus


@dataclass(frozen=True)
class AttendanceStats:
    total_rsvps: int
    attended: int
    attendance_rate: int


def attendance_rate(attended: int, total_rsvps: int) -> int:
    if total_rsvps <= 0:
        return 0
    # Round half up
    return (200 * attended + total_rsvps) // (2 * total_rsvps)


def _count(db: Session, stmt) -> int:
    return int(db.scalar(stmt) or 0)


def stats_for(db: Session, event_id: uuid.UUID) -> AttendanceStats:
    """Attendance figures for one event.

    ``attended`` counts check-ins rather than RSVP flags, so a check-in whose
    RSVP sync never ran is still counted.
    """
    total_rsvps = _count(
        db,
        select(func.count())
        .select_from(RSVP)
        .where(RSVP.event_id == event_id, RSVP.status == RSVPStatus.GOING),
    )
    attended = _count(
        db,
        select(func.count()).select_from(CheckIn).where(CheckIn.event_id == event_id),
    )
    return AttendanceStats(
        total_rsvps=total_rsvps,
        attended=attended,
        attendance_rate=attendance_rate(attended, total_rsvps),
    )

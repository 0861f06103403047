from app.services.attendance_service import (
    CheckInOutcome,
    CheckInResult,
    check_in_status,
    verify_check_in,
)
from app.services.attendance_stats import AttendanceStats, stats_for
from app.services.rsvp_sync import sync_on_check_in

__all__ = [
    "verify_check_in",
    "check_in_status",
    "CheckInOutcome",
    "CheckInResult",
    "stats_for",
    "AttendanceStats",
    "sync_on_check_in",
]

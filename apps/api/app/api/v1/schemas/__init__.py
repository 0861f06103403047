from app.api.v1.schemas.attendance import (
    AlreadyCheckedInOut,
    AttendanceRecordOut,
    AttendanceStatsOut,
    CheckInDetailOut,
    CheckInOut,
    CheckInStatusOut,
    QRTokenOut,
    RSVPOut,
    UserAttendanceOut,
    VerifyCheckInIn,
    VerifyCheckInOut,
)
from app.api.v1.schemas.common import MessageOut, SchemaBase

__all__ = [
    "SchemaBase",
    "MessageOut",
    "VerifyCheckInIn",
    "VerifyCheckInOut",
    "AlreadyCheckedInOut",
    "CheckInOut",
    "RSVPOut",
    "CheckInStatusOut",
    "AttendanceStatsOut",
    "AttendanceRecordOut",
    "UserAttendanceOut",
    "CheckInDetailOut",
    "QRTokenOut",
]

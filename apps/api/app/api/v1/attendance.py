from __future__ import annotations

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from app.auth.deps import CurrentUser, DBSession
from app.api.v1.schemas import (
    AlreadyCheckedInOut,
    AttendanceRecordOut,
    AttendanceStatsOut,
    CheckInOut,
    CheckInStatusOut,
    MessageOut,
    QRTokenOut,
    RSVPOut,
    UserAttendanceOut,
    VerifyCheckInIn,
    VerifyCheckInOut,
)
from app.services import qr_codec
from app.services.attendance_service import (
    CheckInOutcome,
    check_in_status,
    get_event,
    issue_qr_token,
    user_attendance,
    verify_check_in,
)
from app.services.attendance_stats import stats_for

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post(
    "/verify",
    response_model=VerifyCheckInOut,
    responses={
        400: {"model": AlreadyCheckedInOut},
        404: {"model": MessageOut},
        500: {"model": MessageOut},
    },
)
def verify(payload: VerifyCheckInIn, caller: CurrentUser, db: DBSession):
    result = verify_check_in(
        db,
        caller,
        qr_token=payload.qr_token,
        event_id=payload.event_id,
        user_id=payload.user_id,
    )

    if result.outcome == CheckInOutcome.ALREADY_CHECKED_IN:
        # Idempotent success, reported as 400 so the scanner shows "already checked in"
        body = AlreadyCheckedInOut(check_in_time=result.check_in.check_in_time)
        return JSONResponse(status_code=400, content=body.model_dump(mode="json", by_alias=True))

    return VerifyCheckInOut(
        msg="Attendance recorded successfully",
        check_in=CheckInOut.model_validate(result.check_in),
        rsvp=RSVPOut.model_validate(result.rsvp),
    )


@router.get("/status/{event_id}/{user_id}", response_model=CheckInStatusOut)
def status(event_id: str, user_id: str, _: CurrentUser, db: DBSession):
    current = check_in_status(db, event_id, user_id)
    return CheckInStatusOut(
        attended=current.attended,
        check_in_time=current.check_in_time,
        rsvpd=current.rsvpd,
    )


@router.get("/stats/{event_id}", response_model=AttendanceStatsOut)
def stats(event_id: str, _: CurrentUser, db: DBSession):
    event = get_event(db, event_id)
    figures = stats_for(db, event.id)
    return AttendanceStatsOut(
        total_rsvps=figures.total_rsvps,
        checked_in=figures.attended,
        attendance_rate=figures.attendance_rate,
    )


@router.get("/user", response_model=UserAttendanceOut)
def my_attendance(
    user: CurrentUser,
    db: DBSession,
    limit: int = Query(default=50, ge=1, le=200),
    skip: int = Query(default=0, ge=0),
):
    records, total = user_attendance(db, user, limit=limit, skip=skip)
    return UserAttendanceOut(
        records=[AttendanceRecordOut.model_validate(r) for r in records],
        total=total,
        limit=limit,
        skip=skip,
    )


@router.get("/qr/{event_id}", response_model=QRTokenOut)
def my_qr_token(event_id: str, user: CurrentUser, db: DBSession):
    token, expires_at = issue_qr_token(db, user, event_id)
    return QRTokenOut(qr_token=qr_codec.dumps(token), expires_at=expires_at)

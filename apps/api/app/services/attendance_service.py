from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models import RSVP, CheckIn, Event, User
from app.models.user import UserRole
from app.services import qr_codec
from app.services.checkin_store import AlreadyExists, find_check_in, insert_check_in
from app.services.error_codes import ErrorCode
from app.services.exceptions import (
    BadRequestError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    StorageError,
)
from app.services.rsvp_sync import find_rsvp, sync_on_check_in

logger = structlog.get_logger(__name__)


class CheckInOutcome(str, Enum):
    CHECKED_IN = "checked_in"
    ALREADY_CHECKED_IN = "already_checked_in"


@dataclass(frozen=True)
class CheckInResult:
    outcome: CheckInOutcome
    check_in: CheckIn
    # Only set for a first-time check-in
    rsvp: RSVP | None = None


@dataclass(frozen=True)
class CheckInStatus:
    attended: bool
    check_in_time: datetime | None
    rsvpd: bool


def parse_uuid(value: Any) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _reject(exc_cls: type[ServiceError], code: ErrorCode, message: str, **context) -> ServiceError:
    logger.info("check_in_rejected", code=code.value, **context)
    return exc_cls(code.value, message)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def verify_check_in(
    db: Session,
    caller: User | None,
    *,
    qr_token: str | Mapping[str, Any] | None = None,
    event_id: str | None = None,
    user_id: str | None = None,
    now_ms: int | None = None,
    max_age_hours: int | float | None = None,
) -> CheckInResult:
    """Turn one scan into a check-in.

    Steps short-circuit on the first failure: resolve ids, check token age,
    load event and user, detect a prior check-in, insert, then sync the RSVP.
    A duplicate (including one lost to a concurrent insert) comes back as
    ``ALREADY_CHECKED_IN`` with the original record rather than an error.
    A duplicate scan also finishes an RSVP sync that failed on the first one.
    """
    now = qr_codec.now_ms() if now_ms is None else now_ms
    max_age = settings.qr_max_age_hours if max_age_hours is None else max_age_hours
    explicit_event_id = _clean(event_id)

    # 1. Resolve identifiers
    token: qr_codec.QRToken | None = None
    # Falsy payloads (empty string, 0, false, {}, []) count as no token
    if qr_token:
        token = qr_codec.decode(qr_token)
        if token is None:
            raise _reject(BadRequestError, ErrorCode.INVALID_TOKEN, "Invalid QR code format")
        if explicit_event_id and token.event_id != explicit_event_id:
            raise _reject(
                BadRequestError,
                ErrorCode.EVENT_MISMATCH,
                "QR code does not match this event",
                token_event_id=token.event_id,
                event_id=explicit_event_id,
            )

    resolved_user_id = (
        (token.user_id if token else None)
        or _clean(user_id)
        or (str(caller.id) if caller is not None else None)
    )
    resolved_event_id = (token.event_id if token else None) or explicit_event_id

    if not resolved_user_id:
        raise _reject(BadRequestError, ErrorCode.MISSING_USER, "User ID is required")
    if not resolved_event_id:
        raise _reject(BadRequestError, ErrorCode.MISSING_EVENT, "Event ID is required")

    # 2. Expiry
    if token is not None and qr_codec.is_expired(token, max_age, now=now):
        raise _reject(
            BadRequestError,
            ErrorCode.TOKEN_EXPIRED,
            "QR code has expired",
            user_id=resolved_user_id,
            event_id=resolved_event_id,
        )

    try:
        return _persist_check_in(
            db,
            user_ref=resolved_user_id,
            event_ref=resolved_event_id,
            token=token,
            now=now,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "check_in_failed",
            user_id=resolved_user_id,
            event_id=resolved_event_id,
        )
        raise StorageError(ErrorCode.SERVER_ERROR.value, "Server Error") from exc


def _repair_rsvp(db: Session, user_id: uuid.UUID, event_id: uuid.UUID) -> None:
    # A sync that failed after the check-in committed is finished by the next scan
    rsvp = find_rsvp(db, user_id, event_id)
    if rsvp is not None and rsvp.attended:
        return
    sync_on_check_in(db, user_id, event_id)
    logger.info("rsvp_repaired", user_id=str(user_id), event_id=str(event_id))


def _persist_check_in(
    db: Session,
    *,
    user_ref: str,
    event_ref: str,
    token: qr_codec.QRToken | None,
    now: int,
) -> CheckInResult:
    # 3. Entities
    event_uuid = parse_uuid(event_ref)
    event = db.get(Event, event_uuid) if event_uuid else None
    if event is None:
        raise _reject(NotFoundError, ErrorCode.EVENT_NOT_FOUND, "Event not found", event_id=event_ref)

    user_uuid = parse_uuid(user_ref)
    user = db.get(User, user_uuid) if user_uuid else None
    if user is None:
        raise _reject(NotFoundError, ErrorCode.USER_NOT_FOUND, "User not found", user_id=user_ref)

    # 4. Idempotency
    existing = find_check_in(db, user.id, event.id)
    if existing is not None:
        logger.info(
            "check_in_duplicate",
            user_id=str(user.id),
            event_id=str(event.id),
            check_in_time=existing.check_in_time.isoformat(),
        )
        _repair_rsvp(db, user.id, event.id)
        return CheckInResult(outcome=CheckInOutcome.ALREADY_CHECKED_IN, check_in=existing)

    # 5. Persist
    outcome = insert_check_in(
        db,
        user_id=user.id,
        event_id=event.id,
        check_in_time=_ms_to_datetime(now),
        qr_snapshot=qr_codec.snapshot(token) if token else None,
    )
    if isinstance(outcome, AlreadyExists):
        _repair_rsvp(db, user.id, event.id)
        return CheckInResult(outcome=CheckInOutcome.ALREADY_CHECKED_IN, check_in=outcome.record)

    check_in = outcome.record

    # 6. RSVP sync
    rsvp = sync_on_check_in(db, user.id, event.id)

    logger.info(
        "check_in_recorded",
        check_in_id=str(check_in.id),
        user_id=str(user.id),
        event_id=str(event.id),
        check_in_time=check_in.check_in_time.isoformat(),
        via_qr=token is not None,
    )
    return CheckInResult(outcome=CheckInOutcome.CHECKED_IN, check_in=check_in, rsvp=rsvp)


def check_in_status(db: Session, event_id: str, user_id: str) -> CheckInStatus:
    event_uuid = parse_uuid(event_id)
    user_uuid = parse_uuid(user_id)
    if event_uuid is None or user_uuid is None:
        return CheckInStatus(attended=False, check_in_time=None, rsvpd=False)

    check_in = find_check_in(db, user_uuid, event_uuid)
    rsvp = find_rsvp(db, user_uuid, event_uuid)
    return CheckInStatus(
        attended=check_in is not None,
        check_in_time=check_in.check_in_time if check_in else None,
        rsvpd=rsvp is not None,
    )


def get_event(db: Session, event_id: str) -> Event:
    event_uuid = parse_uuid(event_id)
    event = db.get(Event, event_uuid) if event_uuid else None
    if event is None:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "Event not found")
    return event


def user_attendance(
    db: Session, user: User, *, limit: int = 50, skip: int = 0
) -> tuple[list[CheckIn], int]:
    rows = db.scalars(
        select(CheckIn)
        .where(CheckIn.user_id == user.id)
        .order_by(CheckIn.check_in_time.desc())
        .limit(limit)
        .offset(skip)
    ).all()
    total = int(
        db.scalar(select(func.count()).select_from(CheckIn).where(CheckIn.user_id == user.id))
        or 0
    )
    records = [row for row in rows if row.event is not None]
    return records, total


def _is_organizer(user: User) -> bool:
    return user.role in {UserRole.ORGANIZER, UserRole.ADMIN}


def event_check_ins(db: Session, event_id: str) -> list[CheckIn]:
    event_uuid = parse_uuid(event_id)
    if event_uuid is None:
        return []
    return list(
        db.scalars(
            select(CheckIn)
            .where(CheckIn.event_id == event_uuid)
            .order_by(CheckIn.check_in_time.desc())
        ).all()
    )


def user_check_ins(db: Session, caller: User, user_id: str) -> list[CheckIn]:
    user_uuid = parse_uuid(user_id)
    if user_uuid != caller.id and not _is_organizer(caller):
        raise PermissionDeniedError(ErrorCode.ACCESS_DENIED.value, "Access denied")
    if user_uuid is None:
        return []
    return list(
        db.scalars(
            select(CheckIn)
            .where(CheckIn.user_id == user_uuid)
            .order_by(CheckIn.check_in_time.desc())
        ).all()
    )


def issue_qr_token(db: Session, caller: User, event_id: str) -> tuple[qr_codec.QRToken, datetime]:
    event = get_event(db, event_id)
    token = qr_codec.encode(str(caller.id), str(event.id))
    expires_at = _ms_to_datetime(
        int(token.issued_at + settings.qr_max_age_hours * qr_codec.MS_PER_HOUR)
    )
    return token, expires_at

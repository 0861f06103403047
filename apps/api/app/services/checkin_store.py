"""Check-in persistence keyed by (user, event).

Uniqueness is enforced by ``uq_check_ins_user_event``. Callers insert
unconditionally and get back a tagged outcome instead of catching errors.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import CheckIn

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Created:
    record: CheckIn


@dataclass(frozen=True)
class AlreadyExists:
    record: CheckIn


InsertOutcome = Created | AlreadyExists


def find_check_in(db: Session, user_id: uuid.UUID, event_id: uuid.UUID) -> CheckIn | None:
    return db.scalar(
        select(CheckIn).where(
            CheckIn.user_id == user_id,
            CheckIn.event_id == event_id,
        )
    )


def insert_check_in(
    db: Session,
    *,
    user_id: uuid.UUID,
    event_id: uuid.UUID,
    check_in_time: datetime,
    qr_snapshot: dict[str, Any] | None,
) -> InsertOutcome:
    record = CheckIn(
        user_id=user_id,
        event_id=event_id,
        check_in_time=check_in_time,
        qr_snapshot=qr_snapshot,
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = find_check_in(db, user_id, event_id)
        if existing is None:
            # Not the uniqueness constraint
            raise
        logger.info(
            "check_in_race_resolved",
            user_id=str(user_id),
            event_id=str(event_id),
            check_in_id=str(existing.id),
        )
        return AlreadyExists(existing)

    return Created(record)

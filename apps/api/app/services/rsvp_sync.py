from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import RSVP, Event
from app.models.rsvp import RSVPStatus

logger = structlog.get_logger(__name__)


def find_rsvp(db: Session, user_id: uuid.UUID, event_id: uuid.UUID) -> RSVP | None:
    return db.scalar(
        select(RSVP).where(
            RSVP.user_id == user_id,
            RSVP.event_id == event_id,
        )
    )


def increment_rsvp_count(db: Session, event_id: uuid.UUID, by: int = 1) -> None:
    # Single UPDATE so concurrent RSVP creations never lose an increment
    db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(rsvp_count=Event.rsvp_count + by)
        .execution_options(synchronize_session=False)
    )


def _mark_attended(db: Session, rsvp: RSVP) -> RSVP:
    if not rsvp.attended:
        rsvp.attended = True
        db.add(rsvp)
        db.commit()
    logger.info(
        "rsvp_marked_attended",
        rsvp_id=str(rsvp.id),
        user_id=str(rsvp.user_id),
        event_id=str(rsvp.event_id),
        status=rsvp.status.value,
    )
    return rsvp


def sync_on_check_in(db: Session, user_id: uuid.UUID, event_id: uuid.UUID) -> RSVP:
    """Make sure (user, event) has an RSVP flagged as attended.

    A user who scans in without ever RSVPing gets an auto-RSVP (``going``) and
    the event's ``rsvp_count`` goes up by one. An existing RSVP only has its
    ``attended`` flag set; its status is left alone.
    """
    existing = find_rsvp(db, user_id, event_id)
    if existing is not None:
        return _mark_attended(db, existing)

    rsvp = RSVP(
        user_id=user_id,
        event_id=event_id,
        status=RSVPStatus.GOING,
        attended=True,
    )
    db.add(rsvp)
    try:
        db.flush()
        increment_rsvp_count(db, event_id)
        db.commit()
    except IntegrityError:
        # An explicit RSVP landed between our read and insert; that path already counted it
        db.rollback()
        existing = find_rsvp(db, user_id, event_id)
        if existing is None:
            raise
        return _mark_attended(db, existing)

    logger.info(
        "rsvp_auto_created",
        rsvp_id=str(rsvp.id),
        user_id=str(user_id),
        event_id=str(event_id),
    )
    return rsvp

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db import get_db
from app.models import RSVP, Event, User
from app.models.rsvp import RSVPStatus
from app.models.user import UserRole
from app.services.attendance_service import parse_uuid
from app.services.rsvp_sync import increment_rsvp_count

router = APIRouter(prefix="/dev", tags=["dev"])

DBSession = Annotated[Session, Depends(get_db)]


class CreateUserIn(BaseModel):
    email: str
    name: str | None = None
    role: UserRole = UserRole.STUDENT


@router.post("/users")
def dev_create_user(payload: CreateUserIn, db: DBSession):
    email = payload.email.strip().lower()
    user = db.scalar(select(User).where(User.email == email))
    if not user:
        user = User(email=email, name=payload.name, role=payload.role)
        db.add(user)
        db.commit()
        db.refresh(user)
    return {"user_id": str(user.id), "email": user.email, "role": user.role.value}


class CreateEventIn(BaseModel):
    title: str
    organizer_id: str
    location: str | None = None
    starts_at: datetime | None = None


@router.post("/events")
def dev_create_event(payload: CreateEventIn, db: DBSession):
    organizer_uuid = parse_uuid(payload.organizer_id)
    organizer = db.get(User, organizer_uuid) if organizer_uuid else None
    if not organizer:
        raise HTTPException(status_code=404, detail="organizer not found")

    event = Event(
        title=payload.title,
        location=payload.location,
        starts_at=payload.starts_at,
        organizer_id=organizer.id,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return {"event_id": str(event.id), "title": event.title}


class RSVPIn(BaseModel):
    user_id: str
    status: RSVPStatus = RSVPStatus.GOING


@router.post("/events/{event_id}/rsvp")
def dev_rsvp(event_id: str, payload: RSVPIn, db: DBSession):
    event_uuid = parse_uuid(event_id)
    user_uuid = parse_uuid(payload.user_id)
    event = db.get(Event, event_uuid) if event_uuid else None
    user = db.get(User, user_uuid) if user_uuid else None
    if not event or not user:
        raise HTTPException(status_code=404, detail="event or user not found")

    db.add(RSVP(event_id=event.id, user_id=user.id, status=payload.status))
    try:
        db.flush()
        increment_rsvp_count(db, event.id)
        db.commit()
    except IntegrityError:
        db.rollback()
        return {"status": "already_rsvped", "event_id": str(event.id), "user_id": str(user.id)}

    return {"status": "rsvped", "event_id": str(event.id), "user_id": str(user.id)}

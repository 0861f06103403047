from fastapi import APIRouter

from app.auth.deps import CurrentUser, DBSession, OrganizerUser
from app.api.v1.schemas import CheckInDetailOut
from app.services.attendance_service import event_check_ins, user_check_ins

router = APIRouter(prefix="/checkins", tags=["checkins"])


@router.get("/event/{event_id}", response_model=list[CheckInDetailOut])
def list_event_check_ins(event_id: str, _: OrganizerUser, db: DBSession):
    return [CheckInDetailOut.model_validate(c) for c in event_check_ins(db, event_id)]


@router.get("/user/{user_id}", response_model=list[CheckInDetailOut])
def list_user_check_ins(user_id: str, caller: CurrentUser, db: DBSession):
    return [CheckInDetailOut.model_validate(c) for c in user_check_ins(db, caller, user_id)]

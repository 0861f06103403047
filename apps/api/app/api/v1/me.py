from fastapi import APIRouter

from app.auth.deps import CurrentUser
from app.api.v1.schemas import SchemaBase

router = APIRouter(prefix="/me", tags=["me"])


class MeOut(SchemaBase):
    user_id: str
    email: str
    name: str | None
    role: str


@router.get("", response_model=MeOut)
def me(user: CurrentUser):
    return MeOut(user_id=str(user.id), email=user.email, name=user.name, role=user.role.value)

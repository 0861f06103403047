from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.auth.jwt import verify_access_token
from app.core.config import settings
from app.db import get_db
from app.models import User
from app.models.user import UserRole
from app.services.error_codes import ErrorCode
from app.services.exceptions import PermissionDeniedError

DBSession = Annotated[Session, Depends(get_db)]


def _unauthorized(detail: str = "unauthorized") -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.removeprefix("Bearer ").strip() or None
    # The mobile client sends its token here
    legacy = request.headers.get("x-auth-token", "").strip()
    return legacy or None


def _dev_user(db: Session, token: str) -> User:
    prefix = settings.dev_auth_prefix
    if not token.startswith(prefix):
        raise _unauthorized(f"invalid dev token (expected prefix {prefix})")

    email = token.removeprefix(prefix).strip().lower()
    if "@" not in email:
        raise _unauthorized("invalid email in token")

    user = db.scalar(select(User).where(User.email == email))
    if not user:
        user = User(email=email, name=None)
        db.add(user)
        db.commit()
        db.refresh(user)
    return user


def get_current_user(request: Request, db: DBSession) -> User:
    token = _extract_token(request)
    if not token:
        raise _unauthorized("missing bearer token")

    # Local dev auth only
    if settings.auth_mode == "dev" and settings.env == "local":
        return _dev_user(db, token)

    if settings.auth_mode == "jwt":
        try:
            claims = verify_access_token(token)
            user_id = uuid.UUID(str(claims["sub"]))
        except (ValueError, KeyError):
            raise _unauthorized("invalid access token") from None

        user = db.get(User, user_id)
        if not user:
            raise _unauthorized("user not found")
        return user

    raise _unauthorized("auth not configured")


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: UserRole):
    allowed = set(roles)

    def _check(user: CurrentUser) -> User:
        if user.role not in allowed:
            raise PermissionDeniedError(ErrorCode.ACCESS_DENIED.value, "Access denied")
        return user

    return _check


OrganizerUser = Annotated[User, Depends(require_roles(UserRole.ORGANIZER, UserRole.ADMIN))]

from fastapi import APIRouter

from app.api.v1.attendance import router as attendance_router
from app.api.v1.checkins import router as checkins_router
from app.api.v1.me import router as me_router

router = APIRouter()
router.include_router(attendance_router)
router.include_router(checkins_router)
router.include_router(me_router)

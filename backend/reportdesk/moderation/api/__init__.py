"""Moderation API routers."""

from fastapi import APIRouter

from . import reports

router = APIRouter()
router.include_router(reports.router)

__all__ = ["router"]

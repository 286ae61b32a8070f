from __future__ import annotations
"""Metrics API — generation service usage statistics."""

from fastapi import APIRouter

from genstudio.services.image_gen import get_edit_service, get_image_service
from genstudio.services.video_gen import get_video_service

router = APIRouter()


@router.get("/generation")
async def generation_metrics():
    """Return usage statistics for the image, edit and video services."""
    services = (get_image_service(), get_edit_service(), get_video_service())
    return {"services": [svc.get_metrics() for svc in services]}

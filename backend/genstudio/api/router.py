from __future__ import annotations
"""Master API router — mounts all sub-routers."""

from fastapi import APIRouter

from genstudio.api.images import router as images_router
from genstudio.api.metrics import router as metrics_router
from genstudio.api.models import router as models_router
from genstudio.api.videos import router as videos_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(images_router, tags=["Images"])
api_router.include_router(videos_router, tags=["Videos"])
api_router.include_router(models_router)
api_router.include_router(metrics_router, prefix="/metrics", tags=["Metrics"])

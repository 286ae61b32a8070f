"""Model catalog API — image styles, edit styles and video models."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter

from genstudio.services.dimensions import ASPECT_RATIOS, compute_video_dimensions
from genstudio.services.model_registry import MODEL_REGISTRY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/models", tags=["Models"])


@router.get("/image")
async def list_image_models() -> dict[str, Any]:
    """List image styles and edit styles."""
    catalog = MODEL_REGISTRY.to_dict()
    return {
        "models": catalog["image_styles"],
        "edit_styles": catalog["edit_styles"],
        "aspect_ratios": [
            {"id": r.ratio_id, "label": r.label} for r in ASPECT_RATIOS.values()
        ],
        "total": len(catalog["image_styles"]),
    }


@router.get("/video")
async def list_video_models() -> dict[str, Any]:
    """List video models, with the resolution each aspect ratio maps to."""
    models = MODEL_REGISTRY.to_dict()["video_models"]
    for entry in models:
        entry["resolutions"] = {
            r.ratio_id: compute_video_dimensions(r.ratio_id, entry["model"]).as_dict()
            for r in ASPECT_RATIOS.values()
        }
    return {"models": models, "total": len(models)}

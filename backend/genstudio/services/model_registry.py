"""Declarative model capability registry.

Single source of truth for every model the studio exposes: image styles,
edit styles and video models, along with the per-model inference
parameters and the resolution strategy the dimension normalizer dispatches on.

Usage:
    from genstudio.services.model_registry import MODEL_REGISTRY
    model_id = MODEL_REGISTRY.resolve_image_model("flux-dev")
    video = MODEL_REGISTRY.get_video_model("google:3@1")
    duration = MODEL_REGISTRY.normalize_duration("google:3@1", 5)   # -> 8
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

# Resolution strategy taxonomy
RES_GRID64 = "grid64"      # Free 64-px grid, edge bounded to [128, 2048]
RES_CATALOG = "catalog"    # Fixed enumerated resolution list
RES_GRID8 = "grid8"        # 8-px grid with per-axis bounds
RES_FIXED = "fixed"        # Provider picks; we send 1280x720

DEFAULT_IMAGE_MODEL = "runware:100@1"
DEFAULT_VIDEO_MODEL = "bytedance:1@1"
DEFAULT_VIDEO_DURATION = 5
DEFAULT_VIDEO_FPS = 24
DEFAULT_MAX_IMAGE_EDGE = 1024


@dataclass(frozen=True)
class ImageStyle:
    """A user-facing image style backed by one model."""
    style_id: str
    name: str
    description: str
    model_id: str
    max_edge: int = DEFAULT_MAX_IMAGE_EDGE


@dataclass(frozen=True)
class EditStyle:
    """An edit style and the inference parameters its model accepts."""
    style_id: str
    name: str
    model_id: str
    steps: int | None = None
    check_nsfw: bool = False
    uses_strength: bool = False
    caller_cfg: bool = False          # honour the caller's CFG scale
    sends_dimensions: bool = True     # False: size derived from the reference


@dataclass(frozen=True)
class VideoModel:
    """Capability descriptor for a single video model."""
    option_id: str
    name: str
    description: str
    model_id: str
    durations: tuple[int, ...]
    default_duration: int
    fps_options: tuple[int, ...]
    default_fps: int
    resolution_strategy: str
    supports_audio: bool = False
    fixed_fps: bool = False


# ---------------------------------------------------------------------------
# Registry class
# ---------------------------------------------------------------------------

class ModelRegistry:
    """In-memory registry of all supported models."""

    def __init__(self) -> None:
        self._image_styles: dict[str, ImageStyle] = {}
        self._edit_styles: dict[str, EditStyle] = {}
        self._video_models: dict[str, VideoModel] = {}

    def register_image_style(self, style: ImageStyle) -> None:
        self._image_styles[style.style_id] = style

    def register_edit_style(self, style: EditStyle) -> None:
        self._edit_styles[style.style_id] = style

    def register_video_model(self, model: VideoModel) -> None:
        self._video_models[model.option_id] = model

    # --- image ---

    def get_image_style(self, key: str | None) -> ImageStyle | None:
        """Look up an image style by style id or model id."""
        if not key:
            return None
        if key in self._image_styles:
            return self._image_styles[key]
        for style in self._image_styles.values():
            if style.model_id == key:
                return style
        return None

    def resolve_image_model(self, key: str | None) -> str:
        """Map a style id to its model id.

        Unknown keys are passed through as raw model ids; a missing key
        falls back to the default model.
        """
        style = self.get_image_style(key)
        if style:
            return style.model_id
        return key or DEFAULT_IMAGE_MODEL

    def max_edge_for_model(self, model_id: str | None) -> int:
        style = self.get_image_style(model_id)
        return style.max_edge if style else DEFAULT_MAX_IMAGE_EDGE

    def list_image_styles(self) -> list[ImageStyle]:
        return list(self._image_styles.values())

    # --- edit ---

    def get_edit_style(self, style_id: str | None) -> EditStyle | None:
        if not style_id:
            return None
        return self._edit_styles.get(style_id)

    def edit_style_ids(self) -> list[str]:
        return list(self._edit_styles.keys())

    # --- video ---

    def get_video_model(self, key: str | None) -> VideoModel | None:
        """Look up a video model by option id or model id."""
        if not key:
            return None
        if key in self._video_models:
            return self._video_models[key]
        for model in self._video_models.values():
            if model.model_id == key:
                return model
        return None

    def resolve_video_model(self, key: str | None) -> str:
        model = self.get_video_model(key)
        if model:
            return model.model_id
        return key or DEFAULT_VIDEO_MODEL

    def resolution_strategy(self, model_id: str | None) -> str:
        model = self.get_video_model(model_id)
        return model.resolution_strategy if model else RES_FIXED

    def normalize_duration(self, model_id: str | None, duration: int | None) -> int:
        """Snap a requested duration onto the model's allowed set."""
        model = self.get_video_model(model_id)
        if not model:
            return duration or DEFAULT_VIDEO_DURATION
        if duration in model.durations:
            return duration
        if duration is not None:
            logger.debug(
                "Duration %s not allowed for %s, using %s",
                duration, model.model_id, model.default_duration,
            )
        return model.default_duration

    def normalize_fps(self, model_id: str | None, fps: int | None) -> int:
        model = self.get_video_model(model_id)
        if not model:
            return fps or DEFAULT_VIDEO_FPS
        if model.fixed_fps or fps not in model.fps_options:
            return model.default_fps
        return fps

    def list_video_models(self) -> list[VideoModel]:
        return list(self._video_models.values())

    def to_dict(self) -> dict[str, Any]:
        """Serialize all models for API response."""
        return {
            "image_styles": [
                {
                    "id": s.style_id,
                    "name": s.name,
                    "description": s.description,
                    "model": s.model_id,
                    "max_edge": s.max_edge,
                }
                for s in self._image_styles.values()
            ],
            "edit_styles": [
                {"id": s.style_id, "name": s.name, "model": s.model_id}
                for s in self._edit_styles.values()
            ],
            "video_models": [
                {
                    "id": m.option_id,
                    "name": m.name,
                    "description": m.description,
                    "model": m.model_id,
                    "durations": list(m.durations),
                    "default_duration": m.default_duration,
                    "fps_options": list(m.fps_options),
                    "default_fps": m.default_fps,
                    "supports_audio": m.supports_audio,
                }
                for m in self._video_models.values()
            ],
        }


# ---------------------------------------------------------------------------
# Build the global registry
# ---------------------------------------------------------------------------

MODEL_REGISTRY = ModelRegistry()

# ================== Image styles ==================

for _sid, _name, _desc, _model in [
    ("auto-default", "Auto (Default)", "Let Runware choose the best engine for most prompts", "runware:100@1"),
    ("auto-pro", "Auto (Pro)", "Higher quality automatic routing using premium models", "runware:101@1"),
    ("seedream4", "Photoreal", "High realism for people, products, and nature", "bytedance:5@0"),
    ("realistic-vision", "Photoreal (Alt)", "Alternative photoreal look with softer lighting", "civitai:4201@130072"),
    ("qwen-balanced", "Balanced", "General-purpose style mixing realism and creativity", "runware:108@1"),
    ("flux-dev", "Creative", "Artistic, stylized, and surreal imagery", "bfl:2@1"),
    ("flux-schnell", "Fast Draft", "Rapid generations for quick concept previews", "civitai:618692@691639"),
    ("sdxl-base", "Studio XL", "Stable Diffusion XL base for detailed scenes", "civitai:101055@128078"),
    ("quick-generate", "Quick Generate", "Very fast iterations with decent quality", "rundiffusion:110@101"),
]:
    MODEL_REGISTRY.register_image_style(ImageStyle(_sid, _name, _desc, _model))

# ================== Edit styles ==================

MODEL_REGISTRY.register_edit_style(EditStyle(
    "qwen-edit", "Rapid Generations", "runware:108@20",
    steps=20, check_nsfw=True, uses_strength=True,
))
MODEL_REGISTRY.register_edit_style(EditStyle(
    "seededit-3", "High-Resolution Detailed Edits", "bytedance:4@1",
    caller_cfg=True, sends_dimensions=False,
))
MODEL_REGISTRY.register_edit_style(EditStyle(
    "ideogram-3", "Creative Inpainting & Fixes", "ideogram:4@3",
    check_nsfw=True, uses_strength=True,
))

# ================== Video models ==================

MODEL_REGISTRY.register_video_model(VideoModel(
    option_id="bytedance-1@1",
    name="Quick Draft",
    description="Image-guided lightweight video generations",
    model_id="bytedance:1@1",
    durations=(5, 10),
    default_duration=5,
    fps_options=(24,),
    default_fps=24,
    resolution_strategy=RES_CATALOG,
    fixed_fps=True,
))

MODEL_REGISTRY.register_video_model(VideoModel(
    option_id="google-veo3",
    name="Cinematic Realism",
    description="Up to 8s Veo 3 high quality videos with optional native audio",
    model_id="google:3@1",
    durations=(4, 6, 8),
    default_duration=8,
    fps_options=(24,),
    default_fps=24,
    resolution_strategy=RES_GRID8,
    supports_audio=True,
    fixed_fps=True,
))


logger.info(
    "Model registry initialized: %d image styles, %d edit styles, %d video models",
    len(MODEL_REGISTRY.list_image_styles()),
    len(MODEL_REGISTRY.edit_style_ids()),
    len(MODEL_REGISTRY.list_video_models()),
)

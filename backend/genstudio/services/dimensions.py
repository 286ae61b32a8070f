"""Dimension normalizer — aspect-ratio intent → provider-valid width/height.

Three strategies, dispatched on the model's ``resolution_strategy`` tag in
the model registry:

- grid64:  free 64-px grid, edges bounded to [128, 2048] (image models)
- catalog: fixed enumerated resolution list, grouped by aspect bucket
- grid8:   8-px grid with independent per-axis min/max bounds

Every function here is pure and always returns positive, grid-aligned values
that satisfy the target provider's hard constraints.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from genstudio.services.model_registry import (
    MODEL_REGISTRY,
    RES_CATALOG,
    RES_GRID8,
)


@dataclass(frozen=True)
class Resolution:
    width: int
    height: int

    @property
    def ratio(self) -> float:
        return self.width / self.height

    def as_dict(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class AspectRatio:
    ratio_id: str
    label: str
    width_ratio: int
    height_ratio: int

    @property
    def value(self) -> float:
        return self.width_ratio / self.height_ratio

    @property
    def is_square(self) -> bool:
        return self.width_ratio == self.height_ratio


ASPECT_RATIOS: dict[str, AspectRatio] = {
    a.ratio_id: a
    for a in (
        AspectRatio("1:1", "1:1 (Square)", 1, 1),
        AspectRatio("21:9", "21:9 (Ultra-Wide / Landscape)", 21, 9),
        AspectRatio("16:9", "16:9 (Wide / Landscape)", 16, 9),
        AspectRatio("4:3", "4:3 (Standard / Landscape)", 4, 3),
        AspectRatio("3:2", "3:2 (Classic / Landscape)", 3, 2),
        AspectRatio("2:3", "2:3 (Classic / Portrait)", 2, 3),
        AspectRatio("3:4", "3:4 (Standard / Portrait)", 3, 4),
        AspectRatio("9:16", "9:16 (Tall / Portrait)", 9, 16),
        AspectRatio("9:21", "9:21 (Ultra-Tall / Portrait)", 9, 21),
    )
}

DEFAULT_IMAGE_RATIO = "1:1"
DEFAULT_VIDEO_RATIO = "16:9"

MIN_IMAGE_EDGE = 128
GLOBAL_MAX_IMAGE_EDGE = 2048
DIMENSION_STEP = 64


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def get_aspect_ratio(ratio_id: str | None, default: str = DEFAULT_IMAGE_RATIO) -> AspectRatio:
    """Look up an aspect ratio; unknown ids silently fall back to ``default``."""
    return ASPECT_RATIOS.get(ratio_id or "", ASPECT_RATIOS[default])


# ---------------------------------------------------------------------------
# 64-px grid (image models)
# ---------------------------------------------------------------------------

def to_valid_dimension(value: float, cap: float) -> int:
    """Bound ``value`` to [128, cap] and snap it onto the 64-px grid.

    The result never exceeds ``cap`` floored to the grid, and never drops
    below ``MIN_IMAGE_EDGE``.
    """
    effective_cap = min(max(cap, MIN_IMAGE_EDGE), GLOBAL_MAX_IMAGE_EDGE)
    floored_cap = max(MIN_IMAGE_EDGE, (int(effective_cap) // DIMENSION_STEP) * DIMENSION_STEP)
    bounded = max(MIN_IMAGE_EDGE, min(effective_cap, value))
    dimension = _round_half_up(bounded / DIMENSION_STEP) * DIMENSION_STEP
    return max(MIN_IMAGE_EDGE, min(dimension, floored_cap))


def clamp_image_edge(value: int | None, default: int = 1024) -> int:
    """Clamp a raw edge to [128, 2048] and round it to the 64-px grid."""
    clamped = max(MIN_IMAGE_EDGE, min(GLOBAL_MAX_IMAGE_EDGE, value or default))
    return _round_half_up(clamped / DIMENSION_STEP) * DIMENSION_STEP


def compute_dimensions(
    aspect_ratio_id: str | None,
    model: str | None,
    max_edge: int | None = None,
) -> Resolution:
    """Compute image width/height for an aspect ratio on the 64-px grid.

    The long edge takes the model's max edge (or ``max_edge``); the short
    edge is derived from the ratio and never exceeds the long edge.
    """
    option = get_aspect_ratio(aspect_ratio_id, DEFAULT_IMAGE_RATIO)
    base_max_edge = max_edge or MODEL_REGISTRY.max_edge_for_model(model)
    edge = min(base_max_edge, GLOBAL_MAX_IMAGE_EDGE)

    if option.is_square:
        dimension = to_valid_dimension(edge, edge)
        return Resolution(dimension, dimension)

    if option.width_ratio > option.height_ratio:
        width = to_valid_dimension(edge, edge)
        height = to_valid_dimension(width * option.height_ratio / option.width_ratio, width)
        return Resolution(width, height)

    height = to_valid_dimension(edge, edge)
    width = to_valid_dimension(height * option.width_ratio / option.height_ratio, height)
    return Resolution(width, height)


# ---------------------------------------------------------------------------
# Catalog-based providers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResolutionCatalog:
    """Fixed resolution list of a catalog-based provider.

    ``entries`` holds every allowed pair in declaration order (used for
    tie-breaking); ``groups`` buckets them by aspect ratio, smallest tier first.
    """
    entries: tuple[Resolution, ...]
    groups: dict[str, tuple[Resolution, ...]]
    ratio_table: dict[str, Resolution] = field(default_factory=dict)
    default_bucket: str = DEFAULT_VIDEO_RATIO
    preferred_tier: int = 1

    def _tier(self, bucket: str) -> Resolution:
        candidates = self.groups[bucket]
        return candidates[self.preferred_tier] if len(candidates) > self.preferred_tier else candidates[0]

    @property
    def default(self) -> Resolution:
        return self._tier(self.default_bucket)

    def nearest_entry(self, target_ratio: float) -> Resolution:
        """Closest entry by aspect-ratio distance; first declared wins ties."""
        best = self.entries[0]
        best_diff = math.inf
        for res in self.entries:
            diff = abs(res.ratio - target_ratio)
            if diff < best_diff:
                best, best_diff = res, diff
        return best

    def nearest_bucket(self, target_ratio: float) -> str:
        best_key = self.default_bucket
        best_diff = math.inf
        for key, resolutions in self.groups.items():
            for res in resolutions:
                diff = abs(res.ratio - target_ratio)
                if diff < best_diff:
                    best_key, best_diff = key, diff
        return best_key

    def for_ratio_id(self, ratio_id: str | None) -> Resolution:
        if ratio_id in self.ratio_table:
            return self.ratio_table[ratio_id]
        option = ASPECT_RATIOS.get(ratio_id or "")
        if option is None:
            return self.ratio_table.get(self.default_bucket, self.default)
        return self.nearest_entry(option.value)

    def normalize(self, width: int | None, height: int | None) -> Resolution:
        """Map raw requested dimensions onto the catalog."""
        if not width or not height:
            return self.default
        requested = Resolution(width, height)
        if requested in self.entries:
            return requested
        return self._tier(self.nearest_bucket(requested.ratio))


def _r(width: int, height: int) -> Resolution:
    return Resolution(width, height)


BYTEDANCE_CATALOG = ResolutionCatalog(
    entries=(
        _r(864, 480), _r(736, 544), _r(640, 640), _r(544, 736), _r(480, 864), _r(960, 416),
        _r(1248, 704), _r(1120, 832), _r(960, 960), _r(832, 1120), _r(704, 1248), _r(1504, 640),
        _r(1920, 1088), _r(1664, 1248), _r(1440, 1440), _r(1248, 1664), _r(1088, 1920), _r(2176, 928),
    ),
    groups={
        "16:9": (_r(864, 480), _r(1248, 704), _r(1920, 1088)),
        "4:3": (_r(736, 544), _r(1120, 832), _r(1664, 1248)),
        "1:1": (_r(640, 640), _r(960, 960), _r(1440, 1440)),
        "3:4": (_r(544, 736), _r(832, 1120), _r(1248, 1664)),
        "9:16": (_r(480, 864), _r(704, 1248), _r(1088, 1920)),
        "21:9": (_r(960, 416), _r(1504, 640), _r(2176, 928)),
    },
    ratio_table={
        "16:9": _r(1248, 704),
        "4:3": _r(1120, 832),
        "1:1": _r(960, 960),
        "3:4": _r(832, 1120),
        "9:16": _r(704, 1248),
        "21:9": _r(1504, 640),
        "3:2": _r(1248, 704),
        "2:3": _r(704, 1248),
        "9:21": _r(704, 1248),
    },
)

CATALOGS: dict[str, ResolutionCatalog] = {
    "bytedance:1@1": BYTEDANCE_CATALOG,
}


def normalize_catalog_resolution(
    width: int | None,
    height: int | None,
    model: str = "bytedance:1@1",
) -> Resolution:
    """Exact catalog match first, else the preferred tier of the nearest bucket."""
    return CATALOGS.get(model, BYTEDANCE_CATALOG).normalize(width, height)


# ---------------------------------------------------------------------------
# 8-px grid providers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GridSpec:
    step: int = 8
    min_width: int = 256
    max_width: int = 1920
    min_height: int = 256
    max_height: int = 1080
    base_width: int = 1280
    base_height: int = 720

    def snap(self, value: float) -> int:
        return _round_half_up(value / self.step) * self.step

    def clamp_width(self, value: float) -> int:
        return int(min(self.max_width, max(self.min_width, value)))

    def clamp_height(self, value: float) -> int:
        return int(min(self.max_height, max(self.min_height, value)))


GOOGLE_GRID = GridSpec()

GRID_SPECS: dict[str, GridSpec] = {
    "google:3@1": GOOGLE_GRID,
}


def grid8_for_ratio(option: AspectRatio, spec: GridSpec = GOOGLE_GRID) -> Resolution:
    """Fit an aspect ratio onto the grid, starting from the base resolution.

    The opposite axis maximum is enforced first, then the dependent axis is
    re-derived from the ratio and everything is snapped and clamped again.
    """
    wr, hr = option.width_ratio, option.height_ratio
    landscape = wr >= hr

    if landscape:
        width: float = spec.base_width
        height: float = width * hr / wr
        if height > spec.max_height:
            height = spec.max_height
            width = height * wr / hr
    else:
        height = spec.base_height
        width = height * wr / hr
        if width > spec.max_width:
            width = spec.max_width
            height = width * hr / wr

    w = spec.clamp_width(spec.snap(width))
    h = spec.clamp_height(spec.snap(height))

    target = option.value
    if landscape:
        h = spec.clamp_height(spec.snap(w / target))
    else:
        w = spec.clamp_width(spec.snap(h * target))

    return Resolution(spec.clamp_width(spec.snap(w)), spec.clamp_height(spec.snap(h)))


def normalize_grid8_resolution(
    width: int | None,
    height: int | None,
    spec: GridSpec = GOOGLE_GRID,
) -> Resolution:
    """Snap raw requested dimensions onto the grid, preserving their ratio."""
    base_ratio = spec.base_width / spec.base_height
    if not width and not height:
        target_w, target_h = float(spec.base_width), float(spec.base_height)
    elif width and not height:
        target_w, target_h = float(width), width / base_ratio
    elif height and not width:
        target_w, target_h = height * base_ratio, float(height)
    else:
        target_w, target_h = float(width), float(height)

    ratio = target_w / target_h if target_h else base_ratio

    w = spec.clamp_width(spec.snap(target_w))
    h = spec.clamp_height(spec.snap(target_h))

    if w / h != ratio:
        if w >= h:
            h = spec.clamp_height(spec.snap(w / ratio))
        else:
            w = spec.clamp_width(spec.snap(h * ratio))

    return Resolution(spec.clamp_width(spec.snap(w)), spec.clamp_height(spec.snap(h)))


# ---------------------------------------------------------------------------
# Video dispatch
# ---------------------------------------------------------------------------

FALLBACK_VIDEO_RESOLUTION = Resolution(1280, 720)


def compute_video_dimensions(aspect_ratio_id: str | None, model: str | None) -> Resolution:
    """Compute video width/height for an aspect ratio on the model's grid."""
    strategy = MODEL_REGISTRY.resolution_strategy(model)
    if strategy == RES_CATALOG:
        return CATALOGS.get(model or "", BYTEDANCE_CATALOG).for_ratio_id(aspect_ratio_id)
    if strategy == RES_GRID8:
        option = get_aspect_ratio(aspect_ratio_id, DEFAULT_VIDEO_RATIO)
        return grid8_for_ratio(option, GRID_SPECS.get(model or "", GOOGLE_GRID))
    return FALLBACK_VIDEO_RESOLUTION


def normalize_video_resolution(
    model: str | None,
    width: int | None,
    height: int | None,
) -> Resolution | None:
    """Normalize caller-supplied raw dimensions for a video model.

    Returns None for models without a resolution strategy when the caller
    did not supply both dimensions (the provider then picks its default).
    """
    strategy = MODEL_REGISTRY.resolution_strategy(model)
    if strategy == RES_CATALOG:
        return normalize_catalog_resolution(width, height, model or "")
    if strategy == RES_GRID8:
        return normalize_grid8_resolution(width, height, GRID_SPECS.get(model or "", GOOGLE_GRID))
    if width and height:
        return Resolution(width, height)
    return None

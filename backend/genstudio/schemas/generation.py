from __future__ import annotations
"""Pydantic v2 schemas for generation requests.

Field aliases follow the camelCase names the web client sends
(``positivePrompt``, ``taskUUID``, ...); snake_case names are accepted too.
"""

import base64
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field, PositiveInt, field_validator


def to_data_uri(data: bytes, content_type: str | None = None) -> str:
    """Encode raw bytes as a base64 data URI."""
    encoded = base64.b64encode(data).decode("utf-8")
    return f"data:{content_type or 'application/octet-stream'};base64,{encoded}"


class FrameImage(BaseModel):
    """A guide frame for frame-guided video jobs."""

    input_image: str = Field(alias="inputImage")
    frame: str | None = None

    model_config = {"populate_by_name": True}


class GenerationRequest(BaseModel):
    """Generic image/video generation request."""

    kind: Literal["image", "video"] = "image"
    prompt: str = Field("", alias="positivePrompt")
    model: str | None = None
    aspect_ratio: str | None = Field(None, alias="aspectRatio")
    width: PositiveInt | None = None
    height: PositiveInt | None = None
    duration: PositiveInt | None = None
    fps: PositiveInt | None = None
    reference_image: str | None = Field(
        None,
        validation_alias=AliasChoices("reference_image", "inputImage", "frameImage"),
    )
    frame_images: list[FrameImage] = Field(default_factory=list, alias="frameImages")
    negative_prompt: str | None = Field(None, alias="negativePrompt")
    provider_settings: dict[str, Any] | None = Field(None, alias="providerSettings")
    task_uuid: str | None = Field(None, alias="taskUUID")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("reference_image", mode="before")
    @classmethod
    def _encode_binary_reference(cls, value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            return to_data_uri(bytes(value))
        return value

    @property
    def is_frame_guided(self) -> bool:
        return bool(self.reference_image) or any(f.input_image for f in self.frame_images)


class EditRequest(BaseModel):
    """Reference-image edit request (image-to-image)."""

    prompt: str = Field("", alias="positivePrompt")
    edit_style: str = Field("", alias="editStyle")
    seed_image: str | None = Field(
        None,
        validation_alias=AliasChoices("seed_image", "seedImage", "referenceImage"),
    )
    mask_image: str | None = Field(None, alias="maskImage")
    width: PositiveInt | None = None
    height: PositiveInt | None = None
    aspect_ratio: str | None = Field(None, alias="aspectRatio")
    strength: float = 0.8
    cfg_scale: float = Field(7.0, alias="cfgScale")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("seed_image", "mask_image", mode="before")
    @classmethod
    def _encode_binary_images(cls, value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            return to_data_uri(bytes(value), "image/png")
        return value

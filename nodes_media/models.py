"""Data models used across the media composition pipeline.

Bitmaps are ``numpy`` arrays of shape ``(height, width, 4)`` holding
straight (non-premultiplied) RGBA ``uint8`` pixels.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

ANIMATED = "animated"
STATIC = "static"
MISSING = "missing"

LOGO_ROLE = "logo"


@dataclass(frozen=True)
class FrameDims:
    """Bounding box of a GIF frame inside the logical screen."""

    left: int
    top: int
    width: int
    height: int


@dataclass(frozen=True)
class SourceFrame:
    """One decoded GIF frame: a raw RGBA patch plus timing and disposal."""

    dims: FrameDims
    patch: bytes
    delay_ms: int
    disposal_type: int


@dataclass(frozen=True)
class DecodedGif:
    """Frames of a GIF together with its logical screen size."""

    width: int
    height: int
    frames: Tuple[SourceFrame, ...]


@dataclass
class TimedAnimation:
    """Fully composited frames with cumulative start timestamps."""

    canvases: List[np.ndarray]
    timestamps: List[int]
    delays: List[int]
    total_duration_ms: int

    @property
    def frame_count(self) -> int:
        return len(self.canvases)


@dataclass
class AnimatedSource:
    """Tagged union of an animated, static or missing source image."""

    kind: str
    url: Optional[str] = None
    animation: Optional[TimedAnimation] = None
    bitmap: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        if self.kind == ANIMATED:
            valid = self.animation is not None and self.bitmap is None
        elif self.kind == STATIC:
            valid = self.bitmap is not None and self.animation is None
        elif self.kind == MISSING:
            valid = self.animation is None and self.bitmap is None
        else:
            valid = False
        if not valid:
            raise ValueError(f"Inconsistent AnimatedSource variant: {self.kind}")

    @classmethod
    def animated(cls, animation: TimedAnimation, url: Optional[str] = None) -> "AnimatedSource":
        return cls(kind=ANIMATED, url=url, animation=animation)

    @classmethod
    def static(cls, bitmap: np.ndarray, url: Optional[str] = None) -> "AnimatedSource":
        return cls(kind=STATIC, url=url, bitmap=bitmap)

    @classmethod
    def missing(cls, url: Optional[str] = None) -> "AnimatedSource":
        return cls(kind=MISSING, url=url)

    @property
    def is_animated(self) -> bool:
        return self.kind == ANIMATED

    @property
    def is_missing(self) -> bool:
        return self.kind == MISSING


@dataclass(frozen=True)
class SourceSpec:
    """A requested source image and its positional role in the template."""

    url: Optional[str]
    role: str
    row: Optional[int] = None
    col: Optional[int] = None

    @property
    def needs_image(self) -> bool:
        """Logo cells draw the bundled brand mark instead of a fetched image."""
        return self.role != LOGO_ROLE


@dataclass(frozen=True)
class GridShape:
    rows: int
    cols: int
    name: str = ""


@dataclass(frozen=True)
class OutputJob:
    """A validated render request."""

    template: str
    sources: Tuple[SourceSpec, ...]
    output_format: str = "png"
    aspect_ratio: str = "square"
    grid: Optional[GridShape] = None
    text: str = ""
    status_label: str = ""
    token_id: str = ""
    background_color: Optional[Tuple[int, int, int]] = None
    show_watermark: bool = True
    fps: int = 30
    max_duration_ms: int = 10000

    @property
    def is_animated_output(self) -> bool:
        return self.output_format in ("gif", "mp4")


@dataclass
class RenderedMedia:
    """Encoded output bytes with response metadata."""

    data: bytes
    mime_type: str
    filename: str
    frame_count: int = 1
    duration_ms: int = 0
    warnings: List[str] = field(default_factory=list)


__all__ = [
    "ANIMATED",
    "LOGO_ROLE",
    "MISSING",
    "STATIC",
    "AnimatedSource",
    "DecodedGif",
    "FrameDims",
    "GridShape",
    "OutputJob",
    "RenderedMedia",
    "SourceFrame",
    "SourceSpec",
    "TimedAnimation",
]

"""Raster drawing surface used by every template renderer.

The canvas is an ``(height, width, 3)`` RGB ``uint8`` numpy array. Shapes are
rasterized with OpenCV into coverage masks, glyphs come from Pillow fonts, and
everything is blended onto the canvas with numpy. Clip regions stack: nested
clips intersect.
"""

from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

Color = Tuple[int, int, int]
Point = Tuple[float, float]

logger = logging.getLogger(__name__)

_H_ANCHORS = {"left": "l", "center": "m", "right": "r"}
_V_ANCHORS = {"top": "t", "middle": "m", "baseline": "s", "bottom": "b"}


class Typeface:
    """Size-indexed cache of Pillow fonts for one font file."""

    def __init__(self, font_path: Union[str, Path, None] = None) -> None:
        self.font_path = Path(font_path) if font_path else None
        self._fonts: Dict[int, ImageFont.ImageFont] = {}

    def _load(self, size: int):
        if self.font_path is not None and self.font_path.exists():
            try:
                return ImageFont.truetype(str(self.font_path), size)
            except OSError as exc:
                logger.warning("Failed to load font %s: %s", self.font_path, exc)
        return ImageFont.load_default(size=size)

    def font(self, size: float):
        key = max(1, int(round(size)))
        cached = self._fonts.get(key)
        if cached is None:
            cached = self._load(key)
            self._fonts[key] = cached
        return cached


def ensure_rgba(bitmap: np.ndarray) -> np.ndarray:
    """Return ``bitmap`` as an ``(h, w, 4)`` array, adding opaque alpha if needed."""
    if bitmap.ndim == 2:
        bitmap = np.stack([bitmap] * 3, axis=2)
    if bitmap.shape[2] == 4:
        return bitmap
    opaque = np.full((bitmap.shape[0], bitmap.shape[1], 1), 255, dtype=bitmap.dtype)
    return np.concatenate((bitmap[:, :, :3], opaque), axis=2)


def _resize(bitmap: np.ndarray, width: int, height: int) -> np.ndarray:
    src_h, src_w = bitmap.shape[:2]
    if (src_w, src_h) == (width, height):
        return bitmap
    shrinking = width < src_w and height < src_h
    interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR
    return cv2.resize(bitmap, (width, height), interpolation=interpolation)


def _fill_rounded_rect(mask: np.ndarray, x: float, y: float, w: float, h: float, radius: float) -> None:
    x0, y0 = int(round(x)), int(round(y))
    x1, y1 = int(round(x + w)) - 1, int(round(y + h)) - 1
    if x1 < x0 or y1 < y0:
        return
    r = int(round(max(0.0, min(radius, (x1 - x0 + 1) / 2.0, (y1 - y0 + 1) / 2.0))))
    if r <= 0:
        cv2.rectangle(mask, (x0, y0), (x1, y1), 255, thickness=-1)
        return
    cv2.rectangle(mask, (x0 + r, y0), (x1 - r, y1), 255, thickness=-1)
    cv2.rectangle(mask, (x0, y0 + r), (x1, y1 - r), 255, thickness=-1)
    for cx, cy in ((x0 + r, y0 + r), (x1 - r, y0 + r), (x0 + r, y1 - r), (x1 - r, y1 - r)):
        cv2.circle(mask, (cx, cy), r, 255, thickness=-1, lineType=cv2.LINE_AA)


def _polygon_points(points: Sequence[Point], dx: float = 0.0, dy: float = 0.0) -> np.ndarray:
    return np.array(
        [[int(round(px - dx)), int(round(py - dy))] for px, py in points],
        dtype=np.int32,
    ).reshape(-1, 1, 2)


def horizontal_gradient(height: int, width: int, start: Color, end: Color) -> np.ndarray:
    ramp = np.linspace(0.0, 1.0, max(1, width), dtype=np.float32)[None, :, None]
    colors = np.array(start, dtype=np.float32) * (1.0 - ramp) + np.array(end, dtype=np.float32) * ramp
    return np.repeat(colors, max(1, height), axis=0)


def vertical_gradient(height: int, width: int, start: Color, end: Color) -> np.ndarray:
    ramp = np.linspace(0.0, 1.0, max(1, height), dtype=np.float32)[:, None, None]
    colors = np.array(start, dtype=np.float32) * (1.0 - ramp) + np.array(end, dtype=np.float32) * ramp
    return np.repeat(colors, max(1, width), axis=1)


class Surface:
    """Mutable RGB canvas with clip-aware drawing primitives."""

    def __init__(
        self,
        width: int,
        height: int,
        background: Color = (0, 0, 0),
        *,
        typeface: Optional[Typeface] = None,
    ) -> None:
        self.width = int(width)
        self.height = int(height)
        self.typeface = typeface or Typeface()
        self.pixels = np.empty((self.height, self.width, 3), dtype=np.uint8)
        self.pixels[:] = background
        self._clip: Optional[np.ndarray] = None

    # ------------------------------------------------------------------
    # Blending core
    # ------------------------------------------------------------------

    def _blend(
        self,
        left: int,
        top: int,
        coverage: np.ndarray,
        color: Union[Color, np.ndarray],
    ) -> None:
        """Blend ``color`` through ``coverage`` (floats in 0..1) placed at left/top."""
        cov_h, cov_w = coverage.shape[:2]
        x0, y0 = max(0, left), max(0, top)
        x1, y1 = min(self.width, left + cov_w), min(self.height, top + cov_h)
        if x1 <= x0 or y1 <= y0:
            return

        weight = coverage[y0 - top:y1 - top, x0 - left:x1 - left]
        if self._clip is not None:
            weight = weight * self._clip[y0:y1, x0:x1]
        if not np.any(weight > 0):
            return

        if isinstance(color, np.ndarray):
            src = color[y0 - top:y1 - top, x0 - left:x1 - left].astype(np.float32)
        else:
            src = np.array(color, dtype=np.float32)

        region = self.pixels[y0:y1, x0:x1].astype(np.float32)
        weight = weight[..., None]
        blended = region * (1.0 - weight) + src * weight
        self.pixels[y0:y1, x0:x1] = np.clip(blended + 0.5, 0, 255).astype(np.uint8)

    def _local_mask(self, x0: float, y0: float, x1: float, y1: float, pad: int = 2):
        left = int(math.floor(min(x0, x1))) - pad
        top = int(math.floor(min(y0, y1))) - pad
        width = int(math.ceil(abs(x1 - x0))) + 2 * pad + 1
        height = int(math.ceil(abs(y1 - y0))) + 2 * pad + 1
        return np.zeros((max(1, height), max(1, width)), dtype=np.uint8), left, top

    def _full_mask(self) -> np.ndarray:
        return np.zeros((self.height, self.width), dtype=np.uint8)

    @staticmethod
    def _soften(mask: np.ndarray, blur: float) -> np.ndarray:
        coverage = mask.astype(np.float32) / 255.0
        if blur > 0:
            coverage = cv2.GaussianBlur(coverage, (0, 0), sigmaX=max(0.5, blur / 2.0))
        return coverage

    # ------------------------------------------------------------------
    # Clipping
    # ------------------------------------------------------------------

    @contextmanager
    def _clipped(self, mask: np.ndarray) -> Iterator["Surface"]:
        previous = self._clip
        coverage = mask.astype(np.float32) / 255.0
        self._clip = coverage if previous is None else previous * coverage
        try:
            yield self
        finally:
            self._clip = previous

    def clip_rect(self, x: float, y: float, w: float, h: float):
        mask = self._full_mask()
        _fill_rounded_rect(mask, x, y, w, h, 0)
        return self._clipped(mask)

    def clip_rounded_rect(self, x: float, y: float, w: float, h: float, radius: float):
        mask = self._full_mask()
        _fill_rounded_rect(mask, x, y, w, h, radius)
        return self._clipped(mask)

    def clip_polygon(self, points: Sequence[Point]):
        mask = self._full_mask()
        cv2.fillPoly(mask, [_polygon_points(points)], 255, lineType=cv2.LINE_AA)
        return self._clipped(mask)

    # ------------------------------------------------------------------
    # Shapes
    # ------------------------------------------------------------------

    def fill(self, color: Color) -> None:
        self.fill_rect(0, 0, self.width, self.height, color)

    def fill_rect(self, x: float, y: float, w: float, h: float, color: Color, alpha: float = 1.0) -> None:
        self.fill_rounded_rect(x, y, w, h, 0, color, alpha)

    def fill_rounded_rect(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        radius: float,
        color: Color,
        alpha: float = 1.0,
    ) -> None:
        mask, left, top = self._local_mask(x, y, x + w, y + h)
        _fill_rounded_rect(mask, x - left, y - top, w, h, radius)
        self._blend(left, top, self._soften(mask, 0) * alpha, color)

    def fill_gradient_rect(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        start: Color,
        end: Color,
        *,
        vertical: bool = True,
        alpha: float = 1.0,
    ) -> None:
        left, top = int(round(x)), int(round(y))
        width, height = int(round(w)), int(round(h))
        if width <= 0 or height <= 0:
            return
        layer = (
            vertical_gradient(height, width, start, end)
            if vertical
            else horizontal_gradient(height, width, start, end)
        )
        self._blend(left, top, np.full((height, width), alpha, dtype=np.float32), layer)

    def stroke_rounded_rect(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        radius: float,
        color: Color,
        *,
        width: float = 2.0,
        alpha: float = 1.0,
        blur: float = 0.0,
    ) -> None:
        """Stroke a (rounded) rectangle centred on its edge; ``blur`` softens it into a glow."""
        half = width / 2.0
        pad = int(math.ceil(blur * 2 + width)) + 2
        mask, left, top = self._local_mask(x, y, x + w, y + h, pad=pad)
        outer = np.zeros_like(mask)
        _fill_rounded_rect(outer, x - left - half, y - top - half, w + width, h + width, radius + half)
        inner = np.zeros_like(mask)
        _fill_rounded_rect(inner, x - left + half, y - top + half, w - width, h - width, max(0.0, radius - half))
        mask = cv2.subtract(outer, inner)
        self._blend(left, top, np.clip(self._soften(mask, blur) * alpha, 0.0, 1.0), color)

    def stroke_rect(self, x: float, y: float, w: float, h: float, color: Color, *, width: float = 2.0, alpha: float = 1.0) -> None:
        self.stroke_rounded_rect(x, y, w, h, 0, color, width=width, alpha=alpha)

    def fill_circle(self, cx: float, cy: float, radius: float, color: Color, alpha: float = 1.0, blur: float = 0.0) -> None:
        pad = int(math.ceil(blur * 2)) + 2
        mask, left, top = self._local_mask(cx - radius, cy - radius, cx + radius, cy + radius, pad=pad)
        cv2.circle(
            mask,
            (int(round(cx - left)), int(round(cy - top))),
            max(1, int(round(radius))),
            255,
            thickness=-1,
            lineType=cv2.LINE_AA,
        )
        self._blend(left, top, self._soften(mask, blur) * alpha, color)

    def radial_glow(self, cx: float, cy: float, radius: float, color: Color, alpha: float) -> None:
        """Linear falloff disc, full ``alpha`` at the centre and zero at ``radius``."""
        left, top = int(math.floor(cx - radius)), int(math.floor(cy - radius))
        size = int(math.ceil(radius * 2)) + 1
        ys, xs = np.mgrid[0:size, 0:size].astype(np.float32)
        distance = np.hypot(xs + left - cx, ys + top - cy)
        coverage = np.clip(1.0 - distance / max(radius, 1e-6), 0.0, 1.0) * alpha
        self._blend(left, top, coverage, color)

    def fill_polygon(self, points: Sequence[Point], color: Color, alpha: float = 1.0) -> None:
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        mask, left, top = self._local_mask(min(xs), min(ys), max(xs), max(ys))
        cv2.fillPoly(mask, [_polygon_points(points, left, top)], 255, lineType=cv2.LINE_AA)
        self._blend(left, top, self._soften(mask, 0) * alpha, color)

    def line(
        self,
        start: Point,
        end: Point,
        color: Color,
        *,
        width: float = 2.0,
        alpha: float = 1.0,
        blur: float = 0.0,
    ) -> None:
        pad = int(math.ceil(width + blur * 2)) + 2
        mask, left, top = self._local_mask(start[0], start[1], end[0], end[1], pad=pad)
        cv2.line(
            mask,
            (int(round(start[0] - left)), int(round(start[1] - top))),
            (int(round(end[0] - left)), int(round(end[1] - top))),
            255,
            thickness=max(1, int(round(width))),
            lineType=cv2.LINE_AA,
        )
        self._blend(left, top, self._soften(mask, blur) * alpha, color)

    def shift_band(self, top: float, height: float, dx: float, left: float = 0, width: Optional[float] = None) -> None:
        """Horizontally displace a band of already drawn pixels (glitch effect)."""
        y0 = max(0, int(round(top)))
        y1 = min(self.height, int(round(top + height)))
        x0 = max(0, int(round(left)))
        x1 = self.width if width is None else min(self.width, int(round(left + width)))
        offset = int(round(dx))
        if y1 <= y0 or x1 <= x0 or offset == 0:
            return
        band = self.pixels[y0:y1, x0:x1]
        self.pixels[y0:y1, x0:x1] = np.roll(band, offset, axis=1)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def draw_image(
        self,
        bitmap: Optional[np.ndarray],
        x: float,
        y: float,
        w: float,
        h: float,
        *,
        fit: str = "cover",
        alpha: float = 1.0,
    ) -> None:
        """Draw an RGBA bitmap into a box.

        ``cover`` scales to fill the box and crops the overflow around the
        centre, ``contain`` letterboxes, ``stretch`` ignores the aspect ratio.
        """
        target_w, target_h = int(round(w)), int(round(h))
        if bitmap is None or target_w <= 0 or target_h <= 0 or alpha <= 0:
            return
        src_h, src_w = bitmap.shape[:2]
        if src_w <= 0 or src_h <= 0:
            return

        left, top = x, y
        if fit == "cover":
            scale = max(target_w / src_w, target_h / src_h)
            scaled_w = max(target_w, int(math.ceil(src_w * scale)))
            scaled_h = max(target_h, int(math.ceil(src_h * scale)))
            scaled = _resize(bitmap, scaled_w, scaled_h)
            off_x = (scaled_w - target_w) // 2
            off_y = (scaled_h - target_h) // 2
            scaled = scaled[off_y:off_y + target_h, off_x:off_x + target_w]
        elif fit == "contain":
            scale = min(target_w / src_w, target_h / src_h)
            scaled_w = max(1, int(round(src_w * scale)))
            scaled_h = max(1, int(round(src_h * scale)))
            scaled = _resize(bitmap, scaled_w, scaled_h)
            left = x + (target_w - scaled_w) / 2.0
            top = y + (target_h - scaled_h) / 2.0
        else:
            scaled = _resize(bitmap, target_w, target_h)

        rgba = ensure_rgba(scaled)
        coverage = rgba[:, :, 3].astype(np.float32) / 255.0 * alpha
        self._blend(int(round(left)), int(round(top)), coverage, rgba[:, :, :3])

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def measure_text(self, text: str, size: float) -> Tuple[int, int]:
        if not text:
            return 0, 0
        left, top, right, bottom = self.typeface.font(size).getbbox(text)
        return int(right - left), int(bottom - top)

    def wrap_text(self, text: str, size: float, max_width: float) -> List[str]:
        """Greedy word wrap; a single over-long word keeps its own line."""
        lines: List[str] = []
        current = ""
        for word in text.split():
            candidate = f"{current} {word}".strip()
            if current and self.measure_text(candidate, size)[0] > max_width:
                lines.append(current)
                current = word
            else:
                current = candidate
        if current:
            lines.append(current)
        return lines

    def _text_mask(self, text: str, size: float, anchor: str, pad: int):
        font = self.typeface.font(size)
        left, top, right, bottom = font.getbbox(text, anchor=anchor)
        width = int(math.ceil(right - left)) + 2 * pad
        height = int(math.ceil(bottom - top)) + 2 * pad
        image = Image.new("L", (max(1, width), max(1, height)), 0)
        ImageDraw.Draw(image).text((pad - left, pad - top), text, font=font, fill=255, anchor=anchor)
        return np.asarray(image, dtype=np.float32) / 255.0, int(left) - pad, int(top) - pad

    def draw_text(
        self,
        text: str,
        x: float,
        y: float,
        size: float,
        color: Color,
        *,
        align: str = "left",
        baseline: str = "middle",
        alpha: float = 1.0,
        glow: Optional[Color] = None,
        glow_blur: float = 0.0,
        gradient: Optional[Tuple[Color, Color]] = None,
    ) -> None:
        if not text:
            return
        anchor = _H_ANCHORS.get(align, "l") + _V_ANCHORS.get(baseline, "m")
        pad = int(math.ceil(glow_blur * 2)) + 2 if glow is not None else 2
        mask, off_x, off_y = self._text_mask(text, size, anchor, pad)
        left, top = int(round(x)) + off_x, int(round(y)) + off_y

        if glow is not None and glow_blur > 0:
            halo = cv2.GaussianBlur(mask, (0, 0), sigmaX=max(0.5, glow_blur / 2.0))
            self._blend(left, top, np.clip(halo * 1.5, 0.0, 1.0) * alpha, glow)

        if gradient is not None:
            layer = horizontal_gradient(mask.shape[0], mask.shape[1], gradient[0], gradient[1])
            self._blend(left, top, mask * alpha, layer)
        else:
            self._blend(left, top, mask * alpha, color)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def to_rgb(self) -> np.ndarray:
        return self.pixels.copy()

    def encode_png(self) -> bytes:
        ok, buffer = cv2.imencode(".png", cv2.cvtColor(self.pixels, cv2.COLOR_RGB2BGR))
        if not ok:
            raise ValueError("PNG encoding failed")
        return buffer.tobytes()


__all__ = [
    "Color",
    "Point",
    "Surface",
    "Typeface",
    "ensure_rgba",
    "horizontal_gradient",
    "vertical_gradient",
]

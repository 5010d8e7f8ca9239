"""Replay decoded GIF frames into fully composited canvases."""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from nodes_media.gif_decoder import DEFAULT_DELAY_MS
from nodes_media.models import DecodedGif, FrameDims, SourceFrame, TimedAnimation

DISPOSE_TO_BACKGROUND = 2

_default_logger = logging.getLogger(__name__)


def _clamped_box(dims: FrameDims, width: int, height: int):
    left = max(0, dims.left)
    top = max(0, dims.top)
    right = min(width, dims.left + dims.width)
    bottom = min(height, dims.top + dims.height)
    if right <= left or bottom <= top:
        return None
    return left, top, right, bottom


def _patch_array(frame: SourceFrame, width: int, height: int) -> np.ndarray:
    """Return the frame patch as an ``(h, w, 4)`` array or raise ``ValueError``."""
    dims = frame.dims
    if dims.width <= 0 or dims.height <= 0:
        raise ValueError(f"non-positive frame size {dims.width}x{dims.height}")
    if dims.left < 0 or dims.top < 0:
        raise ValueError(f"negative frame offset {dims.left},{dims.top}")
    if dims.left + dims.width > width or dims.top + dims.height > height:
        raise ValueError("frame rectangle exceeds logical screen")
    expected = dims.width * dims.height * 4
    if len(frame.patch) != expected:
        raise ValueError(f"patch has {len(frame.patch)} bytes, expected {expected}")
    return np.frombuffer(frame.patch, dtype=np.uint8).reshape(dims.height, dims.width, 4)


def _draw_patch(canvas: np.ndarray, patch: np.ndarray, dims: FrameDims) -> None:
    """Source-over blend ``patch`` onto ``canvas`` at the frame offset."""
    region = canvas[dims.top:dims.top + dims.height, dims.left:dims.left + dims.width]

    src_alpha = patch[:, :, 3].astype(np.float32) / 255.0
    dst_alpha = region[:, :, 3].astype(np.float32) / 255.0
    inverse_src = 1.0 - src_alpha
    out_alpha = src_alpha + dst_alpha * inverse_src

    out_color = (
        patch[:, :, :3].astype(np.float32) * src_alpha[..., None]
        + region[:, :, :3].astype(np.float32) * (dst_alpha * inverse_src)[..., None]
    ) / np.maximum(out_alpha[..., None], 1e-6)

    region[:, :, :3] = np.clip(out_color, 0, 255).astype(np.uint8)
    region[:, :, 3] = np.clip(out_alpha * 255.0, 0, 255).astype(np.uint8)


def composite_frames(
    decoded: DecodedGif,
    logger: Optional[logging.Logger] = None,
) -> TimedAnimation:
    """Produce one full-screen canvas per decoded frame.

    Frames whose patch cannot be drawn are replaced by a copy of the previous
    canvas (a blank canvas for the first frame) and advance the clock by the
    last known delay.
    """
    log = logger or _default_logger
    width, height = decoded.width, decoded.height
    canvas = np.zeros((height, width, 4), dtype=np.uint8)

    canvases: List[np.ndarray] = []
    timestamps: List[int] = []
    delays: List[int] = []
    elapsed = 0
    previous: Optional[SourceFrame] = None

    for index, frame in enumerate(decoded.frames):
        if previous is not None and previous.disposal_type == DISPOSE_TO_BACKGROUND:
            box = _clamped_box(previous.dims, width, height)
            if box is not None:
                left, top, right, bottom = box
                canvas[top:bottom, left:right] = 0

        try:
            patch = _patch_array(frame, width, height)
            _draw_patch(canvas, patch, frame.dims)
            delay = frame.delay_ms
            snapshot = canvas.copy()
        except ValueError as exc:
            log.warning("Substituting GIF frame %s: %s", index, exc)
            delay = delays[-1] if delays else DEFAULT_DELAY_MS
            snapshot = canvases[-1].copy() if canvases else np.zeros_like(canvas)

        canvases.append(snapshot)
        timestamps.append(elapsed)
        delays.append(delay)
        elapsed += delay
        previous = frame

    return TimedAnimation(
        canvases=canvases,
        timestamps=timestamps,
        delays=delays,
        total_duration_ms=elapsed,
    )


__all__ = ["composite_frames"]

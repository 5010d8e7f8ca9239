"""GIF decoding adapter built on Pillow's GIF reader."""

from __future__ import annotations

import io
import logging
from typing import List, Optional

from PIL import Image, UnidentifiedImageError

from nodes_media.models import DecodedGif, FrameDims, SourceFrame

MIN_DELAY_MS = 20
DEFAULT_DELAY_MS = 50

logger = logging.getLogger(__name__)


def normalize_delay(delay_ms: Optional[float]) -> int:
    """Clamp GIF frame delays the way browsers do.

    Zero (or missing) delays become 50ms, anything under 20ms becomes 20ms.
    """
    try:
        delay = int(round(float(delay_ms or 0)))
    except (TypeError, ValueError):
        delay = 0
    if delay >= MIN_DELAY_MS:
        return delay
    return MIN_DELAY_MS if delay > 0 else DEFAULT_DELAY_MS


def _frame_box(image: Image.Image, width: int, height: int) -> Optional[FrameDims]:
    extent = getattr(image, "dispose_extent", None)
    if not extent or len(extent) != 4:
        return None
    left, top, right, bottom = (int(value) for value in extent)
    left, top = max(0, left), max(0, top)
    right, bottom = min(width, right), min(height, bottom)
    if right <= left or bottom <= top:
        return None
    return FrameDims(left=left, top=top, width=right - left, height=bottom - top)


def _extract_frame(image: Image.Image, width: int, height: int) -> Optional[SourceFrame]:
    dims = _frame_box(image, width, height)
    if dims is None:
        return None

    rgba = image.convert("RGBA")
    patch = rgba.crop(
        (dims.left, dims.top, dims.left + dims.width, dims.top + dims.height)
    ).tobytes()
    if not patch:
        return None

    return SourceFrame(
        dims=dims,
        patch=patch,
        delay_ms=normalize_delay(image.info.get("duration")),
        disposal_type=int(getattr(image, "disposal_method", 0) or 0),
    )


def decode_gif(data: Optional[bytes]) -> Optional[DecodedGif]:
    """Decode GIF bytes into per-frame patches.

    Returns ``None`` instead of raising when the payload is not a GIF or no
    structurally valid frame survives.
    """
    if not data:
        return None

    try:
        image = Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.debug("Payload is not a decodable image: %s", exc)
        return None

    with image:
        if image.format != "GIF":
            return None

        width, height = image.size
        if width <= 0 or height <= 0:
            return None

        frames: List[SourceFrame] = []
        index = 0
        while True:
            try:
                image.seek(index)
            except EOFError:
                break
            except (OSError, ValueError) as exc:
                logger.warning("Stopped decoding GIF at frame %s: %s", index, exc)
                break

            try:
                frame = _extract_frame(image, width, height)
            except (OSError, ValueError) as exc:
                logger.warning("Skipping undecodable GIF frame %s: %s", index, exc)
                frame = None

            if frame is not None:
                frames.append(frame)
            index += 1

    if not frames:
        logger.warning("GIF contained no valid frames (%sx%s)", width, height)
        return None

    return DecodedGif(width=width, height=height, frames=tuple(frames))


__all__ = ["DEFAULT_DELAY_MS", "MIN_DELAY_MS", "decode_gif", "normalize_delay"]

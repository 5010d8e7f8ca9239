"""Turn source URLs into animated, static or missing sources."""

from __future__ import annotations

import io
import logging
from typing import Dict, List, Optional, Sequence

import numpy as np
from PIL import Image, UnidentifiedImageError

from nodes_media.compositor import composite_frames
from nodes_media.fetching import ImageFetcher
from nodes_media.gif_decoder import decode_gif
from nodes_media.models import AnimatedSource, SourceSpec


def decode_static(data: bytes) -> Optional[np.ndarray]:
    """Decode any Pillow-readable still image into an RGBA array."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.seek(0)
            rgba = image.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError, EOFError):
        return None
    return np.array(rgba, dtype=np.uint8)


class SourceLoader:
    """Fetch and decode the sources of one job.

    Each distinct URL is downloaded once per loader; GIF payloads go through
    the decoder and compositor, anything else falls back to a static decode
    and finally to a ``missing`` placeholder. Logo slots are never fetched.
    """

    def __init__(self, fetcher: ImageFetcher, logger: logging.Logger) -> None:
        self.fetcher = fetcher
        self.logger = logger
        self._cache: Dict[str, AnimatedSource] = {}

    def decode_payload(self, data: Optional[bytes], url: Optional[str] = None) -> AnimatedSource:
        if not data:
            return AnimatedSource.missing(url)

        decoded = decode_gif(data)
        if decoded is not None:
            animation = composite_frames(decoded, self.logger)
            if animation.frame_count:
                self.logger.debug(
                    "Decoded %s frames (%sms) from %s",
                    animation.frame_count,
                    animation.total_duration_ms,
                    url,
                )
                return AnimatedSource.animated(animation, url)

        bitmap = decode_static(data)
        if bitmap is not None:
            return AnimatedSource.static(bitmap, url)

        self.logger.warning("Could not decode image payload from %s", url)
        return AnimatedSource.missing(url)

    def load(self, url: Optional[str]) -> AnimatedSource:
        if not url:
            return AnimatedSource.missing(url)
        cached = self._cache.get(url)
        if cached is not None:
            return cached
        source = self.decode_payload(self.fetcher.fetch_bytes(url), url)
        self._cache[url] = source
        return source

    def load_all(self, specs: Sequence[SourceSpec]) -> List[AnimatedSource]:
        return [self.load(spec.url) if spec.needs_image else AnimatedSource.missing() for spec in specs]


__all__ = ["SourceLoader", "decode_static"]

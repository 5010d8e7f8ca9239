"""Map wall-clock output time onto a looping animation's frames."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from nodes_media.models import AnimatedSource, TimedAnimation


def sample(timestamps: Sequence[int], total_duration_ms: int, query_time_ms: float) -> int:
    """Return the index of the frame visible at ``query_time_ms``.

    The animation loops, so the query is taken modulo the total duration.
    A zero total duration is treated as 1ms.
    """
    if not timestamps:
        return 0
    total = total_duration_ms if total_duration_ms > 0 else 1
    looped = query_time_ms % total
    for index in range(len(timestamps) - 1, -1, -1):
        if timestamps[index] <= looped:
            return index
    return 0


def frame_at(animation: TimedAnimation, time_ms: float) -> np.ndarray:
    index = sample(animation.timestamps, animation.total_duration_ms, time_ms)
    return animation.canvases[index]


def bitmap_at(source: Optional[AnimatedSource], time_ms: float) -> Optional[np.ndarray]:
    """Resolve any source variant to the bitmap to draw, ``None`` when missing."""
    if source is None or source.is_missing:
        return None
    if source.is_animated:
        return frame_at(source.animation, time_ms)
    return source.bitmap


__all__ = ["bitmap_at", "frame_at", "sample"]

"""Time functions for the fixed-cycle before/after animations.

All cycles last ``CYCLE_MS`` and are split into one-second phases.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Tuple

CYCLE_MS = 4000
WIPE_STRIPS = 40
WIPE_MAX_OFFSET = 30.0


def _phase(time_ms: float, cycle_ms: int = CYCLE_MS) -> float:
    return (time_ms % cycle_ms) / 1000.0


def crossfade_alphas(time_ms: float) -> Tuple[float, float]:
    """Return ``(before_alpha, after_alpha)`` for the crossfade cycle.

    Hold before, fade to after, hold after, fade back to before.
    """
    phase = _phase(time_ms)
    if phase < 1.0:
        after = 0.0
    elif phase < 2.0:
        after = phase - 1.0
    elif phase < 3.0:
        after = 1.0
    else:
        after = 1.0 - (phase - 3.0)
    return 1.0 - after, after


@dataclass(frozen=True)
class WipeState:
    """Scanline wipe position; ``progress`` is ``None`` while holding."""

    progress: float | None
    from_before: bool

    @property
    def showing_before(self) -> bool:
        if self.progress is None or self.progress < 0.5:
            return self.from_before
        return not self.from_before


def wipe_state(time_ms: float) -> WipeState:
    phase = _phase(time_ms)
    if phase < 1.0:
        return WipeState(progress=None, from_before=True)
    if phase < 2.0:
        return WipeState(progress=phase - 1.0, from_before=True)
    if phase < 3.0:
        return WipeState(progress=None, from_before=False)
    return WipeState(progress=phase - 3.0, from_before=False)


def strip_offsets(frame_index: int, count: int = WIPE_STRIPS) -> List[float]:
    """Deterministic per-strip jitter in pixels for one output frame."""
    offsets = []
    for strip in range(count):
        seed = math.sin(strip * 127.1 + frame_index * 0.1) * 0.5 + 0.5
        offsets.append((seed - 0.5) * WIPE_MAX_OFFSET)
    return offsets


def slider_ease(t: float) -> float:
    """Cubic ease-in-out."""
    if t < 0.5:
        return 4 * t * t * t
    return 1 - math.pow(-2 * t + 2, 3) / 2


def slider_progress(time_ms: float) -> float:
    """Hold 0.5s, slide in over 1.5s, hold 0.5s, slide back over 1.5s."""
    phase = _phase(time_ms)
    if phase < 0.5:
        return 0.0
    if phase < 2.0:
        return slider_ease((phase - 0.5) / 1.5)
    if phase < 2.5:
        return 1.0
    return 1.0 - slider_ease((phase - 2.5) / 1.5)


__all__ = [
    "CYCLE_MS",
    "WipeState",
    "crossfade_alphas",
    "slider_ease",
    "slider_progress",
    "strip_offsets",
    "wipe_state",
]

"""Helpers for estimating and logging frame-loop progress."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Optional


def _format_duration(seconds: float) -> str:
    """Return a compact human-readable duration string."""
    total_seconds = int(round(seconds))
    if total_seconds <= 0:
        return "<1s"
    minutes, seconds_remaining = divmod(total_seconds, 60)
    if minutes:
        return f"{minutes}m{seconds_remaining:02d}s"
    return f"{seconds_remaining}s"


def eta_string(elapsed: float, completed: int, total: int) -> str:
    """Format an ETA string given elapsed time and progress counters."""
    if completed <= 0 or total <= 0 or completed > total or elapsed <= 0.0:
        return "ETA estimating"

    remaining = max(0.0, elapsed / (completed / total) - elapsed)
    return f"ETA {_format_duration(remaining)}"


class FrameProgress:
    """Log progress roughly every 5% of a fixed-length frame loop."""

    def __init__(self, logger: logging.Logger, total: int, label: str) -> None:
        self.logger = logger
        self.total = total
        self.label = label
        self.interval = max(1, total // 20)
        self._started: Optional[float] = None

    def advance(self, completed: int) -> None:
        if self._started is None:
            self._started = perf_counter()
        if completed % self.interval != 0 and completed != self.total:
            return
        elapsed = perf_counter() - self._started
        self.logger.info(
            "%s progress: %s/%s frames (%0.1f%%, %s)",
            self.label,
            completed,
            self.total,
            (completed / self.total) * 100.0 if self.total else 100.0,
            eta_string(elapsed, completed, self.total),
        )


__all__ = ["FrameProgress", "eta_string"]

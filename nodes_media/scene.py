"""Per-frame inputs handed to template renderers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from nodes_media.branding import BrandingAssets
from nodes_media.models import OutputJob, SourceSpec


@dataclass(frozen=True)
class Slot:
    """A source spec paired with the bitmap sampled for the current frame."""

    spec: SourceSpec
    bitmap: Optional[np.ndarray]


@dataclass
class FrameContext:
    job: OutputJob
    assets: BrandingAssets
    slots: List[Slot] = field(default_factory=list)
    time_ms: float = 0.0
    frame_index: int = 0

    def bitmaps(self, role: str) -> List[Optional[np.ndarray]]:
        return [slot.bitmap for slot in self.slots if slot.spec.role == role]

    def bitmap(self, role: str) -> Optional[np.ndarray]:
        matches = self.bitmaps(role)
        return matches[0] if matches else None

    @property
    def status(self) -> str:
        return self.job.status_label

    @property
    def caption(self) -> str:
        return self.job.text


__all__ = ["FrameContext", "Slot"]

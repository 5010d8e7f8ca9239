import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nodes_media.models import AnimatedSource, TimedAnimation  # noqa: E402
from nodes_media.sampler import bitmap_at, frame_at, sample  # noqa: E402


def test_sample_picks_last_frame_started_before_query():
    timestamps = [0, 100, 200]

    assert sample(timestamps, 300, 0) == 0
    assert sample(timestamps, 300, 99.9) == 0
    assert sample(timestamps, 300, 100) == 1
    assert sample(timestamps, 300, 299) == 2


def test_sample_is_periodic_in_total_duration():
    timestamps = [0, 80, 160, 240, 320]
    for t in (0, 33.3, 81, 250, 399):
        assert sample(timestamps, 400, t) == sample(timestamps, 400, t + 400)
        assert sample(timestamps, 400, t) == sample(timestamps, 400, t + 1200)


def test_sample_handles_degenerate_inputs():
    assert sample([], 0, 500) == 0
    assert sample([0], 0, 12345) == 0
    assert sample([0], 100, 12345) == 0


def test_frame_at_and_bitmap_at_resolve_variants():
    canvases = [np.full((1, 1, 4), value, dtype=np.uint8) for value in (10, 20)]
    animation = TimedAnimation(canvases=canvases, timestamps=[0, 50], delays=[50, 50], total_duration_ms=100)
    still = np.zeros((2, 2, 4), dtype=np.uint8)

    assert frame_at(animation, 60) is canvases[1]
    assert bitmap_at(AnimatedSource.animated(animation), 160) is canvases[1]
    assert bitmap_at(AnimatedSource.static(still), 999) is still
    assert bitmap_at(AnimatedSource.missing("https://example.com/a.gif"), 0) is None
    assert bitmap_at(None, 0) is None

import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nodes_media.compositor import composite_frames  # noqa: E402
from nodes_media.models import DecodedGif, FrameDims, SourceFrame  # noqa: E402

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)


def _frame(left, top, width, height, color, delay=100, disposal=0):
    patch = np.tile(np.array(color, dtype=np.uint8), (height, width, 1)).tobytes()
    return SourceFrame(
        dims=FrameDims(left=left, top=top, width=width, height=height),
        patch=patch,
        delay_ms=delay,
        disposal_type=disposal,
    )


def test_composite_produces_one_canvas_per_frame_with_cumulative_timestamps():
    decoded = DecodedGif(
        width=2,
        height=2,
        frames=(
            _frame(0, 0, 2, 2, RED, delay=100),
            _frame(1, 1, 1, 1, BLUE, delay=80),
            _frame(0, 0, 1, 1, BLUE, delay=40),
        ),
    )

    animation = composite_frames(decoded)

    assert animation.frame_count == 3
    assert animation.timestamps == [0, 100, 180]
    assert animation.delays == [100, 80, 40]
    assert animation.total_duration_ms == 220
    assert all(canvas.shape == (2, 2, 4) for canvas in animation.canvases)


def test_leave_in_place_keeps_previous_pixels():
    decoded = DecodedGif(
        width=2,
        height=2,
        frames=(_frame(0, 0, 2, 2, RED), _frame(1, 1, 1, 1, BLUE)),
    )

    second = composite_frames(decoded).canvases[1]

    assert tuple(second[0, 0]) == RED
    assert tuple(second[1, 1]) == BLUE


def test_restore_to_background_clears_previous_rectangle():
    decoded = DecodedGif(
        width=2,
        height=2,
        frames=(_frame(0, 0, 2, 2, RED, disposal=2), _frame(1, 1, 1, 1, BLUE)),
    )

    second = composite_frames(decoded).canvases[1]

    assert tuple(second[0, 0]) == (0, 0, 0, 0)
    assert tuple(second[0, 1]) == (0, 0, 0, 0)
    assert tuple(second[1, 1]) == BLUE


def test_restore_to_previous_is_treated_as_leave():
    decoded = DecodedGif(
        width=2,
        height=2,
        frames=(_frame(0, 0, 2, 2, RED, disposal=3), _frame(1, 1, 1, 1, BLUE)),
    )

    second = composite_frames(decoded).canvases[1]

    assert tuple(second[0, 0]) == RED


def test_canvases_are_independent_snapshots():
    decoded = DecodedGif(
        width=2,
        height=2,
        frames=(_frame(0, 0, 2, 2, RED, disposal=2), _frame(0, 0, 1, 1, BLUE)),
    )

    first, second = composite_frames(decoded).canvases

    assert tuple(first[0, 0]) == RED
    assert tuple(second[0, 0]) == BLUE


def test_corrupt_frame_is_substituted_with_previous_canvas():
    broken = SourceFrame(
        dims=FrameDims(left=0, top=0, width=2, height=2),
        patch=b"\x00" * 5,
        delay_ms=300,
        disposal_type=0,
    )
    decoded = DecodedGif(width=2, height=2, frames=(_frame(0, 0, 2, 2, RED, delay=70), broken))

    animation = composite_frames(decoded)

    assert animation.frame_count == 2
    assert np.array_equal(animation.canvases[1], animation.canvases[0])
    assert animation.delays == [70, 70]
    assert animation.total_duration_ms == 140


def test_corrupt_first_frame_becomes_blank_with_default_delay():
    out_of_bounds = _frame(1, 1, 2, 2, RED)
    decoded = DecodedGif(width=2, height=2, frames=(out_of_bounds, _frame(0, 0, 1, 1, BLUE, delay=60)))

    animation = composite_frames(decoded)

    assert not animation.canvases[0].any()
    assert animation.delays == [50, 60]
    assert animation.timestamps == [0, 50]

import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nodes_media.branding import BrandingAssets, draw_image_with_border  # noqa: E402
from nodes_media.errors import InvalidRequestError  # noqa: E402
from nodes_media.models import GridShape, OutputJob, SourceSpec  # noqa: E402
from nodes_media.scene import FrameContext, Slot  # noqa: E402
from nodes_media.social_posts import parse_stats  # noqa: E402
from nodes_media.surface import Surface  # noqa: E402
from nodes_media.templates import BEFORE_AFTER, DIMENSIONS, GRID, POST, TEMPLATES, get_template  # noqa: E402


def _bitmap(color, size=(24, 16)):
    bitmap = np.zeros((size[1], size[0], 4), dtype=np.uint8)
    bitmap[:, :, :3] = color
    bitmap[:, :, 3] = 255
    return bitmap


def _slots(spec):
    if spec.family == BEFORE_AFTER:
        return [
            Slot(SourceSpec(url="b", role="before"), _bitmap((200, 40, 40))),
            Slot(SourceSpec(url="a", role="after"), _bitmap((40, 200, 40))),
        ]
    if spec.name == "before-after":
        return [
            Slot(SourceSpec(url="b", role="before"), _bitmap((200, 40, 40))),
            Slot(SourceSpec(url="a", role="after"), None),
        ]
    return [Slot(SourceSpec(url=str(i), role="nft"), _bitmap((20 * i, 90, 160))) for i in range(spec.max_slots)]


def test_registry_covers_all_families():
    families = {spec.family for spec in TEMPLATES.values()}
    assert families == {GRID, BEFORE_AFTER, POST}
    assert sum(1 for spec in TEMPLATES.values() if spec.family == POST) == 14
    assert [name for name, spec in TEMPLATES.items() if spec.fixed_cycle_ms == 4000] == [
        "glitch-wipe",
        "transition",
        "slider-horizontal",
        "slider-vertical",
        "slider-diagonal",
    ]
    assert get_template("text-only").max_slots == 0
    assert get_template("eight").max_slots == 8
    with pytest.raises(InvalidRequestError):
        get_template("nope")


@pytest.mark.parametrize("name", sorted(name for name, spec in TEMPLATES.items() if spec.family != GRID))
def test_every_template_renders_a_frame(name):
    spec = TEMPLATES[name]
    ratio = spec.aspect_ratios[-1]
    job = OutputJob(
        template=name,
        sources=(),
        aspect_ratio=ratio,
        text="Holders: 420 | Floor: 0.1" if name == "stats" else "gm frens",
        status_label="Digital Renaissance",
        token_id="42",
    )
    width, height = spec.canvas_size(job)
    surface = Surface(width, height)

    spec.renderer(surface, FrameContext(job, BrandingAssets(), _slots(spec), time_ms=1500.0, frame_index=45))

    assert (width, height) == DIMENSIONS[ratio]
    assert surface.pixels.shape == (height, width, 3)
    assert surface.pixels.any()
    assert surface.encode_png().startswith(b"\x89PNG")


def test_grid_renders_placeholder_for_missing_bitmap():
    spec = get_template("grid")
    sources = (
        SourceSpec(url="a", role="nft", row=0, col=0),
        SourceSpec(url="b", role="nft", row=0, col=1),
    )
    job = OutputJob(template="grid", sources=sources, grid=GridShape(rows=1, cols=2))
    width, height = spec.canvas_size(job)
    surface = Surface(width, height)
    slots = [Slot(sources[0], _bitmap((255, 0, 0))), Slot(sources[1], None)]

    spec.renderer(surface, FrameContext(job, BrandingAssets(), slots))

    assert (width, height) == (2 * 200 + 8 + 32, 200 + 32)
    centre_nft = surface.pixels[116, 116]
    centre_placeholder = surface.pixels[116, 16 + 208 + 30]
    assert centre_nft[0] > 200 and centre_nft[1] < 50
    assert tuple(centre_placeholder) == (0x11, 0x11, 0x11)


def test_bordered_image_without_bitmap_still_draws_frame():
    surface = Surface(100, 100)

    draw_image_with_border(surface, None, 10, 10, 80)

    assert surface.pixels[10:12, 10:90].any()
    assert not surface.pixels[50, 50].any()


def test_parse_stats():
    assert parse_stats("Holders: 420 | Floor: 0.1 ETH |  ") == [("Holders", "420"), ("Floor", "0.1 ETH")]
    assert parse_stats("") == []

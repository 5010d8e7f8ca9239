import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nodes_media.grid import (  # noqa: E402
    BANNER,
    EMPTY,
    LOGO,
    NFT,
    GridLayout,
    GridPlacementError,
    build_layout,
)
from nodes_media.models import GridShape, SourceSpec  # noqa: E402


def test_canvas_dimensions_follow_cell_gap_and_padding():
    layout = GridLayout(3, 4)
    assert layout.width == 4 * 200 + 3 * 8 + 32
    assert layout.height == 3 * 200 + 2 * 8 + 32
    assert layout.cell_origin(1, 2) == (16 + 2 * 208, 16 + 208)


def test_banner_in_last_column_is_rejected():
    layout = GridLayout(2, 3)

    with pytest.raises(GridPlacementError) as excinfo:
        layout.place_banner(0, 2, 0)

    assert excinfo.value.status_code == 400
    assert not layout.is_occupied(0, 2)


def test_banner_occupies_two_columns_and_clears_as_a_unit():
    layout = GridLayout(2, 3)
    layout.place_banner(1, 0, 4)

    assert layout.cell(1, 0).kind == BANNER
    assert layout.cell(1, 1).kind == BANNER
    assert layout.cell(1, 1).anchor_col == 0

    layout.clear(1, 1)

    assert layout.cell(1, 0).kind == EMPTY
    assert layout.cell(1, 1).kind == EMPTY


def test_placing_over_a_banner_half_removes_the_whole_banner():
    layout = GridLayout(1, 3)
    layout.place_banner(0, 1, 0)
    layout.place(0, 2, 1)

    assert layout.cell(0, 1).kind == EMPTY
    assert layout.cell(0, 2).kind == NFT


def test_out_of_range_positions_and_sizes():
    with pytest.raises(GridPlacementError):
        GridLayout(0, 3)
    with pytest.raises(GridPlacementError):
        GridLayout(13, 1)
    with pytest.raises(GridPlacementError):
        GridLayout(2, 2).place(2, 0, 0)


def test_build_layout_from_sources():
    sources = [
        SourceSpec(url="https://example.com/a.gif", role="nft", row=0, col=0),
        SourceSpec(url=None, role="logo", row=0, col=1),
        SourceSpec(url="https://example.com/banner.png", role="banner", row=1, col=0),
    ]

    layout = build_layout(GridShape(rows=2, cols=2), sources)

    assert layout.cell(0, 0).source_index == 0
    assert layout.cell(0, 1).kind == LOGO
    assert layout.cell(1, 1).source_index == 2


def test_build_layout_requires_positions():
    with pytest.raises(GridPlacementError):
        build_layout(GridShape(rows=2, cols=2), [SourceSpec(url="x", role="nft")])

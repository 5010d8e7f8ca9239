"""Grid montage layout and renderer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from nodes_media.branding import draw_image_with_border, draw_logo_glyph
from nodes_media.errors import InvalidRequestError
from nodes_media.models import LOGO_ROLE, GridShape, SourceSpec
from nodes_media.scene import FrameContext
from nodes_media.surface import Surface

CELL_SIZE = 200
GAP = 8
PADDING = 16
MAX_DIMENSION = 12

BACKGROUND = (0, 0, 0)
CELL_OUTLINE = (0x1A, 0x1A, 0x1A)
PLACEHOLDER_FILL = (0x11, 0x11, 0x11)
PLACEHOLDER_GLYPH = (0x44, 0x44, 0x44)

EMPTY = "empty"
NFT = "nft"
LOGO = LOGO_ROLE
BANNER = "banner"


class GridPlacementError(InvalidRequestError):
    """A cell assignment does not fit the grid."""


@dataclass(frozen=True)
class GridCell:
    kind: str = EMPTY
    source_index: Optional[int] = None
    anchor_col: Optional[int] = None

    @property
    def occupied(self) -> bool:
        return self.kind != EMPTY


class GridLayout:
    """Rows x columns of square cells; banners occupy two adjacent columns."""

    def __init__(self, rows: int, cols: int) -> None:
        if not (1 <= rows <= MAX_DIMENSION and 1 <= cols <= MAX_DIMENSION):
            raise GridPlacementError(
                f"Grid must be between 1x1 and {MAX_DIMENSION}x{MAX_DIMENSION}",
                details=f"got {rows}x{cols}",
            )
        self.rows = rows
        self.cols = cols
        self._cells: List[List[GridCell]] = [[GridCell() for _ in range(cols)] for _ in range(rows)]

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @property
    def width(self) -> int:
        return self.cols * CELL_SIZE + (self.cols - 1) * GAP + PADDING * 2

    @property
    def height(self) -> int:
        return self.rows * CELL_SIZE + (self.rows - 1) * GAP + PADDING * 2

    @staticmethod
    def cell_origin(row: int, col: int) -> Tuple[int, int]:
        return PADDING + col * (CELL_SIZE + GAP), PADDING + row * (CELL_SIZE + GAP)

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def _check(self, row: int, col: int) -> None:
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise GridPlacementError(
                "Cell is outside the grid",
                details=f"({row}, {col}) in {self.rows}x{self.cols}",
            )

    def cell(self, row: int, col: int) -> GridCell:
        self._check(row, col)
        return self._cells[row][col]

    def is_occupied(self, row: int, col: int) -> bool:
        return self.cell(row, col).occupied

    def clear(self, row: int, col: int) -> None:
        """Empty a cell; clearing either half of a banner empties both."""
        current = self.cell(row, col)
        if current.kind == BANNER and current.anchor_col is not None:
            anchor = current.anchor_col
            self._cells[row][anchor] = GridCell()
            self._cells[row][anchor + 1] = GridCell()
        else:
            self._cells[row][col] = GridCell()

    def place(self, row: int, col: int, source_index: int) -> None:
        self.clear(row, col)
        self._cells[row][col] = GridCell(kind=NFT, source_index=source_index)

    def place_logo(self, row: int, col: int) -> None:
        self.clear(row, col)
        self._cells[row][col] = GridCell(kind=LOGO)

    def place_banner(self, row: int, col: int, source_index: Optional[int]) -> None:
        self._check(row, col)
        if col >= self.cols - 1:
            raise GridPlacementError(
                "Banner needs two adjacent columns",
                details=f"column {col} is the last column of {self.cols}",
            )
        self.clear(row, col)
        self.clear(row, col + 1)
        half = GridCell(kind=BANNER, source_index=source_index, anchor_col=col)
        self._cells[row][col] = half
        self._cells[row][col + 1] = half

    def cells(self):
        """Yield ``(row, col, cell)`` for every position, row-major."""
        for row in range(self.rows):
            for col in range(self.cols):
                yield row, col, self._cells[row][col]


def build_layout(shape: GridShape, sources: Sequence[SourceSpec]) -> GridLayout:
    """Place every source; later sources overwrite earlier ones at the same cell."""
    layout = GridLayout(shape.rows, shape.cols)
    for index, spec in enumerate(sources):
        if spec.row is None or spec.col is None:
            raise GridPlacementError(
                "Grid sources need row and col",
                details=f"source {index} ({spec.role})",
            )
        if spec.role == BANNER:
            layout.place_banner(spec.row, spec.col, index)
        elif spec.role == LOGO:
            layout.place_logo(spec.row, spec.col)
        elif spec.role == NFT:
            layout.place(spec.row, spec.col, index)
        else:
            raise GridPlacementError(f"Unknown grid role '{spec.role}'")
    return layout


def _draw_placeholder(surface: Surface, x: float, y: float, w: float, h: float) -> None:
    surface.fill_rect(x, y, w, h, PLACEHOLDER_FILL)
    surface.draw_text("?", x + w / 2, y + h / 2, min(w, h) * 0.3, PLACEHOLDER_GLYPH, align="center")


def render_grid(surface: Surface, frame: FrameContext) -> None:
    shape = frame.job.grid
    if shape is None:
        raise InvalidRequestError("Grid template requires a grid shape")
    layout = build_layout(shape, [slot.spec for slot in frame.slots])

    surface.fill(BACKGROUND)
    for row, col, _ in layout.cells():
        x, y = layout.cell_origin(row, col)
        surface.stroke_rect(x, y, CELL_SIZE, CELL_SIZE, CELL_OUTLINE, width=2)

    for row, col, cell in layout.cells():
        x, y = layout.cell_origin(row, col)
        if cell.kind == LOGO:
            draw_logo_glyph(surface, frame.assets, x, y, CELL_SIZE)
            continue
        if cell.kind == NFT:
            width = CELL_SIZE
        elif cell.kind == BANNER and cell.anchor_col == col:
            width = CELL_SIZE * 2 + GAP
        else:
            continue

        bitmap = frame.slots[cell.source_index].bitmap if cell.source_index is not None else None
        if bitmap is None:
            _draw_placeholder(surface, x, y, width, CELL_SIZE)
        else:
            draw_image_with_border(surface, bitmap, x, y, width, CELL_SIZE)


__all__ = [
    "BANNER",
    "CELL_SIZE",
    "EMPTY",
    "GAP",
    "LOGO",
    "NFT",
    "PADDING",
    "GridCell",
    "GridLayout",
    "GridPlacementError",
    "build_layout",
    "render_grid",
]

"""Square social post layouts (1200x1200)."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import numpy as np

from nodes_media.branding import (
    BLACK,
    CYAN,
    GOLD,
    TEAL,
    WHITE,
    draw_gradient_text,
    draw_image_with_border,
    draw_sparkle,
    draw_subtle_glows,
    draw_text_watermark,
)
from nodes_media.scene import FrameContext
from nodes_media.surface import Surface

SIZE = 1200
ORANGE = (0xFF, 0xA5, 0x00)
GREY = (0x88, 0x88, 0x88)

DEFAULT_GIVEAWAY_TEXT = "Follow + RT + Tag 3 friends"
DEFAULT_SHOWCASE_TITLE = "MY COLLECTION"

# Layouts that draw their own text and therefore skip the caption pill.
STYLED_TEMPLATES = frozenset({"text-only", "gm", "quote", "stats", "giveaway", "showcase"})


def parse_stats(text: str) -> List[Tuple[str, str]]:
    """Split ``"Holders: 420 | Floor: 0.1"`` into ``[("Holders", "420"), ...]``."""
    stats = []
    for part in text.split("|"):
        part = part.strip()
        if not part:
            continue
        label, _, value = part.partition(":")
        stats.append((label.strip(), value.strip()))
    return stats


def _nfts(frame: FrameContext) -> List[Optional[np.ndarray]]:
    return frame.bitmaps("nft")


def _row(surface: Surface, bitmaps: Sequence[Optional[np.ndarray]], size: float, gap: float, y: float) -> None:
    start_x = (SIZE - (len(bitmaps) * size + (len(bitmaps) - 1) * gap)) / 2
    for index, bitmap in enumerate(bitmaps):
        draw_image_with_border(surface, bitmap, start_x + index * (size + gap), y, size)


def _grid(surface: Surface, bitmaps: Sequence[Optional[np.ndarray]], cols: int, rows: int, size: float, gap: float, lift: float) -> None:
    start_x = (SIZE - (size * cols + gap * (cols - 1))) / 2
    start_y = (SIZE - (size * rows + gap * (rows - 1))) / 2 - lift
    for index, bitmap in enumerate(bitmaps[: cols * rows]):
        col, row = index % cols, index // cols
        draw_image_with_border(surface, bitmap, start_x + col * (size + gap), start_y + row * (size + gap), size)


# ----------------------------------------------------------------------
# Basic layouts
# ----------------------------------------------------------------------


def render_text_only(surface: Surface, frame: FrameContext) -> None:
    draw_gradient_text(surface, frame.caption or "NODES", SIZE / 2, SIZE / 2 - 40, 80)
    surface.draw_text("NODES COMMUNITY", SIZE / 2, SIZE / 2 + 60, 32, CYAN, align="center")


def render_single(surface: Surface, frame: FrameContext) -> None:
    nfts = _nfts(frame)
    if not nfts:
        return
    size = SIZE * 0.7
    draw_image_with_border(surface, nfts[0], (SIZE - size) / 2, (SIZE - size) / 2 - 40, size)


def render_duo(surface: Surface, frame: FrameContext) -> None:
    size = SIZE * 0.42
    _row(surface, _nfts(frame)[:2], size, SIZE * 0.04, (SIZE - size) / 2 - 30)


def render_trio(surface: Surface, frame: FrameContext) -> None:
    nfts = _nfts(frame)[:3]
    size = SIZE * 0.35
    if nfts:
        draw_image_with_border(surface, nfts[0], (SIZE - size) / 2, SIZE * 0.12, size)
    if len(nfts) > 1:
        _row(surface, nfts[1:], size, SIZE * 0.03, SIZE * 0.52)


def render_quad(surface: Surface, frame: FrameContext) -> None:
    _grid(surface, _nfts(frame), 2, 2, SIZE * 0.4, SIZE * 0.04, 30)


def render_six(surface: Surface, frame: FrameContext) -> None:
    _grid(surface, _nfts(frame), 3, 2, SIZE * 0.28, SIZE * 0.03, 20)


def render_eight(surface: Surface, frame: FrameContext) -> None:
    _grid(surface, _nfts(frame), 4, 2, SIZE * 0.2, SIZE * 0.025, 20)


def render_before_after_post(surface: Surface, frame: FrameContext) -> None:
    """Two-up comparison with LEGACY / NOW labels and a connecting arrow."""
    before = frame.bitmap("before")
    after = frame.bitmap("after")
    if before is None and after is None:
        nfts = _nfts(frame)
        before = nfts[0] if nfts else None
        after = nfts[1] if len(nfts) > 1 else None

    size = SIZE * 0.42
    gap = SIZE * 0.08
    start_x = (SIZE - (size * 2 + gap)) / 2
    y = (SIZE - size) / 2 - 30
    surface.draw_text("LEGACY", start_x + size / 2, y - 40, 28, GREY, align="center")
    surface.draw_text("NOW", start_x + size + gap + size / 2, y - 40, 28, CYAN, align="center")
    draw_image_with_border(surface, before, start_x, y, size)
    draw_image_with_border(surface, after, start_x + size + gap, y, size)

    cx, cy = SIZE / 2, y + size / 2
    surface.fill_rect(cx - 28, cy - 5, 30, 10, CYAN)
    surface.fill_polygon([(cx, cy - 20), (cx, cy + 20), (cx + 28, cy)], TEAL)


# ----------------------------------------------------------------------
# Styled layouts
# ----------------------------------------------------------------------


def render_gm(surface: Surface, frame: FrameContext) -> None:
    surface.draw_text("GM", SIZE / 2, SIZE * 0.35, 200, CYAN, align="center", gradient=(CYAN, TEAL))
    nfts = _nfts(frame)[:5]
    if nfts:
        _row(surface, nfts, SIZE * 0.18, SIZE * 0.02, SIZE * 0.58)
    text = frame.caption
    if text and text.lower() != "gm":
        surface.draw_text(text, SIZE / 2, SIZE * 0.88, 36, WHITE, align="center")


def render_quote(surface: Surface, frame: FrameContext) -> None:
    surface.draw_text('"', SIZE * 0.08, SIZE * 0.35, 300, CYAN, align="left", baseline="baseline", alpha=0.125)
    surface.draw_text('"', SIZE * 0.92, SIZE * 0.75, 300, CYAN, align="right", baseline="baseline", alpha=0.125)

    lines = surface.wrap_text(frame.caption, 48, SIZE * 0.7)
    line_height = 60
    start_y = SIZE / 2 - ((len(lines) - 1) * line_height) / 2
    for index, line in enumerate(lines):
        surface.draw_text(line, SIZE / 2, start_y + index * line_height, 48, WHITE, align="center")

    nfts = _nfts(frame)
    if nfts:
        draw_image_with_border(surface, nfts[0], SIZE * 0.78, SIZE * 0.78, SIZE * 0.15)


def render_stats(surface: Surface, frame: FrameContext) -> None:
    surface.draw_text("COLLECTION STATS", SIZE / 2, SIZE * 0.15, 48, WHITE, align="center")

    stats = parse_stats(frame.caption)
    per_row = max(1, min(len(stats), 3))
    width = SIZE * 0.28
    gap = SIZE * 0.04
    start_x = (SIZE - (width * per_row + gap * (per_row - 1))) / 2
    for index, (label, value) in enumerate(stats):
        col, row = index % 3, index // 3
        cx = start_x + col * (width + gap) + width / 2
        cy = SIZE * 0.35 + row * SIZE * 0.22
        box_x, box_y, box_h = cx - width / 2, cy - SIZE * 0.08, SIZE * 0.16
        surface.fill_rounded_rect(box_x, box_y, width, box_h, 16, CYAN, alpha=0.06)
        surface.stroke_rounded_rect(box_x, box_y, width, box_h, 16, CYAN, width=2, alpha=0.19)
        surface.draw_text(value, cx, cy - 25, 56, CYAN, align="center")
        surface.draw_text(label, cx, cy + 35, 24, GREY, align="center")

    nfts = _nfts(frame)[:6]
    if nfts:
        size = SIZE * 0.12
        step = size + SIZE * 0.015
        start = (SIZE - len(nfts) * step) / 2
        for index, bitmap in enumerate(nfts):
            draw_image_with_border(surface, bitmap, start + index * step, SIZE * 0.82, size)


def render_giveaway(surface: Surface, frame: FrameContext) -> None:
    surface.draw_text("GIVEAWAY", SIZE / 2, SIZE * 0.12, 72, GOLD, align="center", gradient=(GOLD, ORANGE))
    title_w, _ = surface.measure_text("GIVEAWAY", 72)
    for side in (-1, 1):
        draw_sparkle(surface, SIZE / 2 + side * (title_w / 2 + 50), SIZE * 0.12, 44)

    nfts = _nfts(frame)
    if nfts:
        size = SIZE * 0.45
        draw_image_with_border(surface, nfts[0], (SIZE - size) / 2, SIZE * 0.2, size)
        for x, y, mark in ((0.22, 0.3, 40), (0.78, 0.35, 40), (0.25, 0.6, 32), (0.75, 0.55, 32)):
            draw_sparkle(surface, SIZE * x, SIZE * y, mark)

    surface.draw_text(frame.caption or DEFAULT_GIVEAWAY_TEXT, SIZE / 2, SIZE * 0.78, 32, WHITE, align="center")
    surface.draw_text("Ends in 48 hours", SIZE / 2, SIZE * 0.88, 24, CYAN, align="center")


def render_showcase(surface: Surface, frame: FrameContext) -> None:
    surface.draw_text(frame.caption or DEFAULT_SHOWCASE_TITLE, SIZE / 2, SIZE * 0.1, 48, WHITE, align="center")
    nfts = _nfts(frame)
    if nfts:
        draw_image_with_border(surface, nfts[0], SIZE * 0.08, SIZE * 0.2, SIZE * 0.5)
        size, gap = SIZE * 0.22, SIZE * 0.02
        for index, bitmap in enumerate(nfts[1:5]):
            col, row = index % 2, index // 2
            draw_image_with_border(surface, bitmap, SIZE * 0.62 + col * (size + gap), SIZE * 0.2 + row * (size + gap), size)
    surface.draw_text("NODES INNER STATES", SIZE / 2, SIZE * 0.92, 28, CYAN, align="center")


# ----------------------------------------------------------------------
# Frame assembly
# ----------------------------------------------------------------------


def _caption_pill(surface: Surface, text: str) -> None:
    text_w, _ = surface.measure_text(text, 36)
    pill_w, pill_h = text_w + 60, 70
    pill_x, pill_y = (SIZE - pill_w) / 2, SIZE - 100
    surface.fill_rounded_rect(pill_x, pill_y, pill_w, pill_h, 35, BLACK, alpha=0.7)
    surface.stroke_rounded_rect(pill_x, pill_y, pill_w, pill_h, 35, CYAN, width=2, alpha=0.25)
    surface.draw_text(text, SIZE / 2, pill_y + pill_h / 2, 36, WHITE, align="center")


def post_renderer(name: str, layout):
    """Wrap a layout with the shared background, caption pill and watermark."""

    def render(surface: Surface, frame: FrameContext) -> None:
        surface.fill(frame.job.background_color or BLACK)
        draw_subtle_glows(surface)
        layout(surface, frame)
        if frame.caption and name not in STYLED_TEMPLATES:
            _caption_pill(surface, frame.caption)
        if frame.job.show_watermark:
            draw_text_watermark(surface, frame.assets)

    render.__name__ = f"render_{name.replace('-', '_')}_post"
    return render


__all__ = [
    "DEFAULT_GIVEAWAY_TEXT",
    "STYLED_TEMPLATES",
    "parse_stats",
    "post_renderer",
    "render_before_after_post",
    "render_duo",
    "render_eight",
    "render_giveaway",
    "render_gm",
    "render_quad",
    "render_quote",
    "render_showcase",
    "render_single",
    "render_six",
    "render_stats",
    "render_text_only",
    "render_trio",
]

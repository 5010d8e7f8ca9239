"""Before/after comparison templates.

Every layout is expressed as fractions of the canvas so the same renderer
serves the square, landscape and portrait formats it supports. ``before`` is
the legacy artwork and ``after`` the current one.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from nodes_media.branding import (
    BLACK,
    CYAN,
    MUTED,
    TEAL,
    WHITE,
    draw_branded_watermark,
    draw_dr_banner,
    draw_image_with_border,
    draw_subtle_glows,
    draw_tagline,
    draw_text_with_glow,
    interference_label,
)
from nodes_media.scene import FrameContext
from nodes_media.surface import Point, Surface
from nodes_media.transitions import (
    WIPE_STRIPS,
    crossfade_alphas,
    slider_progress,
    strip_offsets,
    wipe_state,
)

LEGACY = "LEGACY"
LEGACY_GREY = (0x88, 0x88, 0x88)
PANEL = (0x0D, 0x0D, 0x0D)


# ----------------------------------------------------------------------
# Shared chrome
# ----------------------------------------------------------------------


def _background(surface: Surface, frame: FrameContext) -> None:
    surface.fill(frame.job.background_color or BLACK)
    draw_subtle_glows(surface)


def _chrome(surface: Surface, frame: FrameContext, *, tagline: bool = True) -> None:
    if tagline:
        draw_tagline(surface, frame.status, bool(frame.caption))
    draw_dr_banner(surface, frame.assets, frame.status)
    if frame.job.show_watermark:
        draw_branded_watermark(surface, frame.assets)


def _label(surface: Surface, text: str, x: float, y: float, size: float, color) -> None:
    surface.draw_text(text, x, y, size, color, align="center")


def _arrow(surface: Surface, cx: float, cy: float, size: float, *, down: bool = False) -> None:
    """Cyan-to-teal arrow pointing right (or down)."""
    half, shaft = size / 2.0, size / 10.0
    if down:
        surface.fill_rect(cx - shaft, cy - half, shaft * 2, size * 0.55, CYAN)
        head: List[Point] = [(cx - half * 0.7, cy), (cx + half * 0.7, cy), (cx, cy + half)]
    else:
        surface.fill_rect(cx - half, cy - shaft, size * 0.55, shaft * 2, CYAN)
        head = [(cx, cy - half * 0.7), (cx, cy + half * 0.7), (cx + half, cy)]
    surface.fill_polygon(head, TEAL)


def _clipped_cover(surface: Surface, bitmap: Optional[np.ndarray], x, y, w, h, radius, alpha: float = 1.0) -> None:
    if bitmap is None:
        return
    with surface.clip_rounded_rect(x, y, w, h, radius):
        surface.draw_image(bitmap, x, y, w, h, alpha=alpha)


def _outer_glow(surface: Surface, x, y, w, h, radius) -> None:
    surface.stroke_rounded_rect(x, y, w, h, radius, CYAN, width=2, alpha=0.31, blur=15)


def _crisp_border(surface: Surface, x, y, w, h, radius) -> None:
    surface.stroke_rounded_rect(x, y, w, h, radius, CYAN, width=2, alpha=0.19)


# ----------------------------------------------------------------------
# Static layouts
# ----------------------------------------------------------------------


def render_side_by_side(surface: Surface, frame: FrameContext) -> None:
    _background(surface, frame)
    cw, ch = surface.width, surface.height
    size = min(cw, ch) * 0.40
    img_y = ch * 0.22
    left_x, right_x = cw * 0.06, cw * 0.54

    for x in (left_x, right_x):
        surface.fill_rounded_rect(x - 8, img_y - 8, size + 16, size + 16, size * 0.09, PANEL)

    _label(surface, LEGACY, left_x + size / 2, ch * 0.14, 26, MUTED)
    _label(surface, interference_label(frame.status), right_x + size / 2, ch * 0.14, 26, CYAN)

    draw_image_with_border(surface, frame.bitmap("before"), left_x, img_y, size)
    draw_image_with_border(surface, frame.bitmap("after"), right_x, img_y, size)

    _arrow(surface, cw / 2, img_y + size / 2, 64)
    if frame.caption:
        draw_text_with_glow(surface, frame.caption, cw / 2, ch * 0.78, 36)
    _chrome(surface, frame)


def render_vertical(surface: Surface, frame: FrameContext) -> None:
    _background(surface, frame)
    cw, ch = surface.width, surface.height
    portrait = ch > cw * 1.2
    size = cw * 0.58 if portrait else min(cw, ch) * 0.32
    center_x = (cw - size) / 2
    label_size = 20 if portrait else 24

    start_y = ch * 0.05 if portrait else ch * 0.07
    _label(surface, LEGACY, cw / 2, start_y, label_size, MUTED)
    before_y = start_y + ch * 0.03
    draw_image_with_border(surface, frame.bitmap("before"), center_x, before_y, size)

    arrow_y = before_y + size + ch * 0.025
    _arrow(surface, cw / 2, arrow_y, 40 if portrait else 48, down=True)

    after_label_y = arrow_y + ch * 0.03
    _label(surface, interference_label(frame.status), cw / 2, after_label_y, label_size, CYAN)
    after_y = after_label_y + ch * 0.025
    draw_image_with_border(surface, frame.bitmap("after"), center_x, after_y, size)

    if frame.caption:
        text_y = min(ch * 0.90, after_y + size + ch * 0.035)
        draw_text_with_glow(surface, frame.caption, cw / 2, text_y, 24 if portrait else 30)
    _chrome(surface, frame)


def render_frame_overlay(surface: Surface, frame: FrameContext) -> None:
    """Large current artwork with the legacy one as a picture-in-picture."""
    _background(surface, frame)
    cw, ch = surface.width, surface.height
    main = min(cw, ch) * 0.60
    main_x, main_y = (cw - main) / 2, ch * 0.08

    draw_image_with_border(surface, frame.bitmap("after"), main_x, main_y, main)
    _label(surface, interference_label(frame.status), cw / 2, main_y - 20, 26, CYAN)

    pip = min(cw, ch) * 0.25
    pip_x = main_x - pip * 0.15
    pip_y = main_y + main - pip * 0.6
    surface.fill_rounded_rect(pip_x - 6, pip_y - 6, pip + 12, pip + 12, pip * 0.08, BLACK, alpha=0.7)
    draw_image_with_border(surface, frame.bitmap("before"), pip_x, pip_y, pip)
    _label(surface, LEGACY, pip_x + pip / 2, pip_y - 16, 14, (0x99, 0x99, 0x99))

    if frame.caption:
        text_y = main_y + main + (ch - main_y - main) * 0.45
        draw_text_with_glow(surface, frame.caption, cw / 2, text_y, 32)
    _chrome(surface, frame)


def render_split_diagonal(surface: Surface, frame: FrameContext) -> None:
    """One frame cut by a slanted seam: legacy on the left, current on the right."""
    _background(surface, frame)
    cw, ch = surface.width, surface.height
    x, y = cw * 0.08, ch * 0.14
    w, h = cw * 0.84, ch * 0.68
    radius = min(w, h) * 0.04
    top_seam, bottom_seam = x + w * 0.62, x + w * 0.38

    _label(surface, LEGACY, x + w * 0.2, ch * 0.08, 26, MUTED)
    _label(surface, interference_label(frame.status), x + w * 0.8, ch * 0.08, 26, CYAN)

    _outer_glow(surface, x, y, w, h, radius)
    left_part = [(x, y), (top_seam, y), (bottom_seam, y + h), (x, y + h)]
    right_part = [(top_seam, y), (x + w, y), (x + w, y + h), (bottom_seam, y + h)]
    for bitmap, polygon in ((frame.bitmap("before"), left_part), (frame.bitmap("after"), right_part)):
        if bitmap is None:
            continue
        with surface.clip_polygon(polygon):
            _clipped_cover(surface, bitmap, x, y, w, h, radius)
    surface.line((top_seam, y), (bottom_seam, y + h), CYAN, width=6, alpha=0.6, blur=12)
    surface.line((top_seam, y), (bottom_seam, y + h), WHITE, width=2)
    _crisp_border(surface, x, y, w, h, radius)

    if frame.caption:
        draw_text_with_glow(surface, frame.caption, cw / 2, ch * 0.9, 34)
    _chrome(surface, frame)


def render_reveal_card(surface: Surface, frame: FrameContext) -> None:
    """Single card: legacy artwork in the top half, current in the bottom half."""
    _background(surface, frame)
    cw, ch = surface.width, surface.height
    card_h = ch * 0.72
    card_w = min(cw * 0.8, card_h * 0.85)
    x, y = (cw - card_w) / 2, ch * 0.1
    radius = card_w * 0.06
    half = card_h / 2

    _outer_glow(surface, x, y, card_w, card_h, radius)
    with surface.clip_rounded_rect(x, y, card_w, card_h, radius):
        surface.fill_rect(x, y, card_w, card_h, PANEL)
        if frame.bitmap("before") is not None:
            with surface.clip_rect(x, y, card_w, half):
                surface.draw_image(frame.bitmap("before"), x, y, card_w, half)
        if frame.bitmap("after") is not None:
            with surface.clip_rect(x, y + half, card_w, half):
                surface.draw_image(frame.bitmap("after"), x, y + half, card_w, half)
    surface.line((x, y + half), (x + card_w, y + half), CYAN, width=6, alpha=0.5, blur=10)
    surface.line((x, y + half), (x + card_w, y + half), CYAN, width=2)
    _crisp_border(surface, x, y, card_w, card_h, radius)

    for text, color, top in (
        (LEGACY, LEGACY_GREY, y + 16),
        (interference_label(frame.status), CYAN, y + half + 16),
    ):
        text_w, _ = surface.measure_text(text, 18)
        surface.fill_rounded_rect(x + 16, top, text_w + 24, 32, 16, BLACK, alpha=0.7)
        surface.draw_text(text, x + 28, top + 16, 18, color)

    if frame.caption:
        draw_text_with_glow(surface, frame.caption, cw / 2, ch * 0.9, 34)
    _chrome(surface, frame)


# ----------------------------------------------------------------------
# Fixed-cycle animations
# ----------------------------------------------------------------------


def _centre_square(surface: Surface) -> Tuple[float, float, float, float]:
    size = min(surface.width, surface.height) * 0.7
    return (surface.width - size) / 2, surface.height * 0.1, size, size * 0.08


def _cycle_label(surface: Surface, frame: FrameContext, showing_before: bool) -> None:
    if showing_before:
        _label(surface, LEGACY, surface.width / 2, surface.height * 0.05, 28, LEGACY_GREY)
    else:
        _label(surface, frame.status.upper(), surface.width / 2, surface.height * 0.05, 28, CYAN)


def render_glitch_wipe(surface: Surface, frame: FrameContext) -> None:
    """Scanline wipe between the two artworks with a jittering noise band."""
    _background(surface, frame)
    x, y, size, radius = _centre_square(surface)
    before, after = frame.bitmap("before"), frame.bitmap("after")
    state = wipe_state(frame.time_ms)

    _outer_glow(surface, x, y, size, size, radius)
    if state.progress is None:
        _clipped_cover(surface, before if state.from_before else after, x, y, size, size, radius)
    else:
        source, target = (before, after) if state.from_before else (after, before)
        strip_h = size / WIPE_STRIPS
        wipe_line = y + size * state.progress
        revealed = sum(1 for i in range(WIPE_STRIPS) if y + i * strip_h + strip_h / 2 < wipe_line)

        _clipped_cover(surface, source, x, y, size, size, radius)
        if target is not None and revealed:
            with surface.clip_rect(x, y, size, revealed * strip_h):
                _clipped_cover(surface, target, x, y, size, size, radius)

        offsets = strip_offsets(frame.frame_index)
        for i in range(WIPE_STRIPS):
            strip_y = y + i * strip_h
            distance = abs(strip_y + strip_h / 2 - wipe_line)
            if distance >= strip_h * 3:
                continue
            surface.shift_band(strip_y, strip_h, offsets[i] * (1 - distance / (strip_h * 3)), x, size)
            if distance < strip_h * 1.5:
                surface.fill_rect(x, strip_y, size, 2, CYAN, alpha=0.145)

        if 0.45 < state.progress < 0.55:
            with surface.clip_rounded_rect(x, y, size, size, radius):
                surface.fill_rect(x, y, size, size, CYAN, alpha=0.08)
    _crisp_border(surface, x, y, size, size, radius)

    _cycle_label(surface, frame, state.showing_before)
    if frame.caption:
        draw_text_with_glow(surface, frame.caption, surface.width / 2, surface.height * 0.88, 36)
    _chrome(surface, frame)


def render_transition(surface: Surface, frame: FrameContext) -> None:
    """Crossfade loop: both layers alpha-blended, before first, after on top."""
    _background(surface, frame)
    x, y, size, radius = _centre_square(surface)
    before_alpha, after_alpha = crossfade_alphas(frame.time_ms)

    _outer_glow(surface, x, y, size, size, radius)
    if before_alpha > 0:
        _clipped_cover(surface, frame.bitmap("before"), x, y, size, size, radius, alpha=before_alpha)
    if after_alpha > 0:
        _clipped_cover(surface, frame.bitmap("after"), x, y, size, size, radius, alpha=after_alpha)
    _crisp_border(surface, x, y, size, size, radius)

    _cycle_label(surface, frame, before_alpha >= after_alpha)
    if frame.caption:
        draw_text_with_glow(surface, frame.caption, surface.width / 2, surface.height * 0.9, 36)
    _chrome(surface, frame)


def _slider_polygon(direction: str, progress: float, x, y, w, h) -> List[Point]:
    if direction == "horizontal":
        return [(x, y), (x + w * progress, y), (x + w * progress, y + h), (x, y + h)]
    if direction == "vertical":
        return [(x, y), (x + w, y), (x + w, y + h * progress), (x, y + h * progress)]
    tilt = h * 0.35
    reach = progress * (w + tilt)
    points: List[Point] = [(x, y), (x + min(reach, w), y)]
    if reach > w:
        points.append((x + w, y + h * min(1.0, (reach - w) / tilt)))
    points.extend([(x + max(0.0, reach - tilt), y + h), (x, y + h)])
    return points


def _slider_seam(direction: str, progress: float, x, y, w, h) -> Tuple[Point, Point]:
    if direction == "horizontal":
        seam_x = x + w * progress
        return (seam_x, y), (seam_x, y + h)
    if direction == "vertical":
        seam_y = y + h * progress
        return (x, seam_y), (x + w, seam_y)
    tilt = h * 0.35
    reach = progress * (w + tilt)
    return (x + min(reach, w), y), (x + max(0.0, reach - tilt), y + h)


def _slider_handle(surface: Surface, direction: str, cx: float, cy: float) -> None:
    surface.fill_circle(cx, cy, 10, CYAN, blur=12)
    surface.fill_circle(cx, cy, 10, CYAN)
    surface.stroke_rounded_rect(cx - 10, cy - 10, 20, 20, 10, WHITE, width=2)
    if direction == "vertical":
        surface.fill_polygon([(cx - 4, cy - 2), (cx + 4, cy - 2), (cx, cy - 7)], BLACK)
        surface.fill_polygon([(cx - 4, cy + 2), (cx + 4, cy + 2), (cx, cy + 7)], BLACK)
    else:
        surface.fill_polygon([(cx - 2, cy - 4), (cx - 2, cy + 4), (cx - 7, cy)], BLACK)
        surface.fill_polygon([(cx + 2, cy - 4), (cx + 2, cy + 4), (cx + 7, cy)], BLACK)


def render_slider(surface: Surface, frame: FrameContext, direction: str) -> None:
    """Eased reveal of the current artwork over the legacy one."""
    _background(surface, frame)
    cw, ch = surface.width, surface.height
    padding = min(cw, ch) * 0.03
    bottom_reserve = 35
    x, y = padding, padding
    w, h = cw - padding * 2, ch - padding - bottom_reserve
    radius = min(w, h) * 0.03
    progress = slider_progress(frame.time_ms)

    _outer_glow(surface, x, y, w, h, radius)
    _clipped_cover(surface, frame.bitmap("before"), x, y, w, h, radius)
    if progress > 0 and frame.bitmap("after") is not None:
        with surface.clip_polygon(_slider_polygon(direction, progress, x, y, w, h)):
            _clipped_cover(surface, frame.bitmap("after"), x, y, w, h, radius)
    _crisp_border(surface, x, y, w, h, radius)

    if 0.005 < progress < 0.995:
        start, end = _slider_seam(direction, progress, x, y, w, h)
        with surface.clip_rounded_rect(x, y, w, h, radius):
            surface.line(start, end, CYAN, width=3, alpha=0.8, blur=20)
            surface.line(start, end, CYAN, width=3)
            _slider_handle(surface, direction, (start[0] + end[0]) / 2, (start[1] + end[1]) / 2)

    if frame.job.token_id:
        surface.draw_text(f"#{frame.job.token_id}", cw / 2, ch - bottom_reserve / 2, 22, WHITE, align="center", alpha=0.45)
    _chrome(surface, frame, tagline=False)


def render_slider_horizontal(surface: Surface, frame: FrameContext) -> None:
    render_slider(surface, frame, "horizontal")


def render_slider_vertical(surface: Surface, frame: FrameContext) -> None:
    render_slider(surface, frame, "vertical")


def render_slider_diagonal(surface: Surface, frame: FrameContext) -> None:
    render_slider(surface, frame, "diagonal")


__all__ = [
    "render_frame_overlay",
    "render_glitch_wipe",
    "render_reveal_card",
    "render_side_by_side",
    "render_slider",
    "render_slider_diagonal",
    "render_slider_horizontal",
    "render_slider_vertical",
    "render_split_diagonal",
    "render_transition",
    "render_vertical",
]

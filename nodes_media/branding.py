"""Brand colours, assets and the decorative passes shared by templates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
from PIL import Image, UnidentifiedImageError

from nodes_media.surface import Color, Surface, Typeface

CYAN: Color = (0x00, 0xD4, 0xFF)
TEAL: Color = (0x4F, 0xFF, 0xDF)
DARK_BG: Color = (0x0A, 0x0A, 0x0A)
BLACK: Color = (0, 0, 0)
WHITE: Color = (255, 255, 255)
GOLD: Color = (0xFF, 0xD7, 0x00)
MUTED: Color = (0x66, 0x66, 0x66)

DIGITAL_RENAISSANCE = "Digital Renaissance"
GENESIS_INTERFERENCE = "Genesis Interference"
TAGLINE = "ART IS NEVER FINISHED"

LOGO_FILES = ("logos/nodes-logo.png", "nodes-logo.png", "logos/NODES symbol.png")
GLITCH_WORDMARK_FILES = ("logos/nodes.png",)
DR_BANNER_FILES = ("logos/The Digital Renaissance.png",)
FONT_FILES = ("fonts/SpaceGrotesk-Bold.ttf", "fonts/Inter-Bold.ttf")

logger = logging.getLogger(__name__)


def _load_bitmap(path: Path) -> Optional[np.ndarray]:
    try:
        with Image.open(path) as image:
            return np.array(image.convert("RGBA"), dtype=np.uint8)
    except (UnidentifiedImageError, OSError) as exc:
        logger.warning("Failed to load branding asset %s: %s", path, exc)
        return None


def _first_existing(root: Path, candidates: Sequence[str]) -> Optional[Path]:
    for candidate in candidates:
        path = root / candidate
        if path.is_file():
            return path
    return None


@dataclass
class BrandingAssets:
    """Optional bitmaps and font; every draw helper copes with their absence."""

    logo: Optional[np.ndarray] = None
    glitch_wordmark: Optional[np.ndarray] = None
    dr_banner: Optional[np.ndarray] = None
    font_path: Optional[Path] = None

    @classmethod
    def load(cls, assets_dir: Path) -> "BrandingAssets":
        root = Path(assets_dir)
        if not root.is_dir():
            logger.info("Branding assets directory %s not found; using text fallbacks", root)
            return cls()

        def bitmap(candidates: Sequence[str]) -> Optional[np.ndarray]:
            path = _first_existing(root, candidates)
            return _load_bitmap(path) if path is not None else None

        return cls(
            logo=bitmap(LOGO_FILES),
            glitch_wordmark=bitmap(GLITCH_WORDMARK_FILES),
            dr_banner=bitmap(DR_BANNER_FILES),
            font_path=_first_existing(root, FONT_FILES),
        )

    def typeface(self) -> Typeface:
        return Typeface(self.font_path)


# ----------------------------------------------------------------------
# Labels
# ----------------------------------------------------------------------


def interference_label(status: str) -> str:
    if status == DIGITAL_RENAISSANCE:
        return "DIGITAL RENAISSANCE"
    if status == GENESIS_INTERFERENCE:
        return "GENESIS INTERFERENCE"
    return status.upper()


# ----------------------------------------------------------------------
# Decorative passes
# ----------------------------------------------------------------------


def draw_subtle_glows(surface: Surface) -> None:
    size = max(surface.width, surface.height)
    surface.fill_circle(-size * 0.1, -size * 0.1, size * 0.5, CYAN, alpha=0.08)
    surface.fill_circle(size * 1.1, size * 1.1, size * 0.5, TEAL, alpha=0.08)


def draw_gradient_text(surface: Surface, text: str, x: float, y: float, size: float) -> None:
    surface.draw_text(text, x, y, size, CYAN, align="center", gradient=(CYAN, TEAL))


def draw_text_with_glow(surface: Surface, text: str, x: float, y: float, size: float, color: Color = WHITE) -> None:
    surface.draw_text(text, x, y, size, color, align="center", glow=CYAN, glow_blur=20)


def draw_image_with_border(
    surface: Surface,
    bitmap: Optional[np.ndarray],
    x: float,
    y: float,
    w: float,
    h: Optional[float] = None,
    *,
    alpha: float = 1.0,
) -> None:
    """Soft glow stroke, clipped cover draw, then a crisp border.

    A ``None`` bitmap keeps both strokes so the slot stays visible.
    """
    h = w if h is None else h
    radius = min(w, h) * 0.08
    surface.stroke_rounded_rect(x, y, w, h, radius, CYAN, width=2, alpha=0.31, blur=15)
    if bitmap is not None:
        with surface.clip_rounded_rect(x, y, w, h, radius):
            surface.draw_image(bitmap, x, y, w, h, fit="cover", alpha=alpha)
    surface.stroke_rounded_rect(x, y, w, h, radius, CYAN, width=2, alpha=0.19)


def draw_text_watermark(surface: Surface, assets: BrandingAssets) -> None:
    top, right = 30, surface.width - 30
    if assets.logo is not None:
        surface.draw_image(assets.logo, right - 130, top - 5, 40, 40, fit="contain", alpha=0.5)
    surface.draw_text("NODES", right, top, 24, CYAN, align="right", baseline="top", alpha=0.5)


def draw_branded_watermark(surface: Surface, assets: BrandingAssets) -> None:
    wordmark = assets.glitch_wordmark
    if wordmark is None:
        draw_text_watermark(surface, assets)
        return
    width = 100
    height = width * wordmark.shape[0] / max(1, wordmark.shape[1])
    surface.draw_image(wordmark, surface.width - width - 16, 12, width, height, fit="stretch", alpha=0.40)


def draw_dr_banner(surface: Surface, assets: BrandingAssets, status: str) -> None:
    if status != DIGITAL_RENAISSANCE or assets.dr_banner is None:
        return
    banner = assets.dr_banner
    height = 36
    width = height * banner.shape[1] / max(1, banner.shape[0])
    x = (surface.width - width) / 2
    y = surface.height - height - 8
    surface.draw_image(banner, x, y, width, height, fit="stretch", alpha=0.45)


def draw_tagline(surface: Surface, status: str, has_caption: bool) -> None:
    if has_caption:
        return
    y = surface.height - 56 if status == DIGITAL_RENAISSANCE else surface.height - 20
    surface.draw_text(TAGLINE, surface.width / 2, y, 14, WHITE, align="center", alpha=0.25)


def draw_logo_glyph(surface: Surface, assets: BrandingAssets, x: float, y: float, size: float) -> None:
    """Brand logo in a square box, or a cyan ``N`` when no logo asset exists."""
    if assets.logo is not None:
        surface.draw_image(assets.logo, x, y, size, size, fit="contain")
        return
    surface.draw_text("N", x + size / 2, y + size / 2, size * 0.5, CYAN, align="center")


def draw_sparkle(surface: Surface, cx: float, cy: float, size: float, color: Color = GOLD, alpha: float = 1.0) -> None:
    """Four-pointed star used where the layouts call for sparkle marks."""
    arm, waist = size / 2.0, size / 8.0
    points = [
        (cx, cy - arm),
        (cx + waist, cy - waist),
        (cx + arm, cy),
        (cx + waist, cy + waist),
        (cx, cy + arm),
        (cx - waist, cy + waist),
        (cx - arm, cy),
        (cx - waist, cy - waist),
    ]
    surface.fill_polygon(points, color, alpha=alpha)


__all__ = [
    "BLACK",
    "CYAN",
    "DARK_BG",
    "DIGITAL_RENAISSANCE",
    "GOLD",
    "MUTED",
    "TEAL",
    "WHITE",
    "BrandingAssets",
    "draw_branded_watermark",
    "draw_dr_banner",
    "draw_gradient_text",
    "draw_image_with_border",
    "draw_logo_glyph",
    "draw_sparkle",
    "draw_subtle_glows",
    "draw_tagline",
    "draw_text_watermark",
    "draw_text_with_glow",
    "interference_label",
]

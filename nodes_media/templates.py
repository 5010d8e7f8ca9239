"""Registry of every renderable template."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from nodes_media import before_after, social_posts
from nodes_media.errors import InvalidRequestError
from nodes_media.grid import GridLayout, render_grid
from nodes_media.models import OutputJob
from nodes_media.scene import FrameContext
from nodes_media.surface import Surface
from nodes_media.transitions import CYCLE_MS

Renderer = Callable[[Surface, FrameContext], None]

GRID = "grid"
BEFORE_AFTER = "before-after"
POST = "post"

DIMENSIONS: Dict[str, Tuple[int, int]] = {
    "square": (1200, 1200),
    "landscape": (1200, 675),
    "portrait": (675, 1200),
}
ALL_RATIOS = ("square", "landscape", "portrait")


@dataclass(frozen=True)
class TemplateSpec:
    name: str
    family: str
    renderer: Renderer
    roles: Tuple[str, ...]
    max_slots: int
    aspect_ratios: Tuple[str, ...] = ("square",)
    required_roles: Tuple[str, ...] = ()
    fixed_cycle_ms: Optional[int] = None

    def canvas_size(self, job: OutputJob) -> Tuple[int, int]:
        if self.family == GRID:
            if job.grid is None:
                raise InvalidRequestError("Grid template requires a grid shape")
            layout = GridLayout(job.grid.rows, job.grid.cols)
            return layout.width, layout.height
        return DIMENSIONS[job.aspect_ratio]


def _before_after(name: str, renderer: Renderer, ratios=ALL_RATIOS, cycle: Optional[int] = None) -> TemplateSpec:
    return TemplateSpec(
        name=name,
        family=BEFORE_AFTER,
        renderer=renderer,
        roles=("before", "after"),
        max_slots=2,
        aspect_ratios=tuple(ratios),
        required_roles=("before", "after"),
        fixed_cycle_ms=cycle,
    )


def _post(name: str, layout, slots: int, roles=("nft",)) -> TemplateSpec:
    return TemplateSpec(
        name=name,
        family=POST,
        renderer=social_posts.post_renderer(name, layout),
        roles=tuple(roles),
        max_slots=slots,
    )


TEMPLATES: Dict[str, TemplateSpec] = {
    spec.name: spec
    for spec in (
        TemplateSpec(
            name="grid",
            family=GRID,
            renderer=render_grid,
            roles=("nft", "logo", "banner"),
            max_slots=144,
        ),
        _before_after("side-by-side", before_after.render_side_by_side, ("square", "landscape")),
        _before_after("vertical", before_after.render_vertical, ("square", "portrait")),
        _before_after("split-diagonal", before_after.render_split_diagonal),
        _before_after("frame-overlay", before_after.render_frame_overlay),
        _before_after("glitch-wipe", before_after.render_glitch_wipe, cycle=CYCLE_MS),
        _before_after("reveal-card", before_after.render_reveal_card, ("square", "portrait")),
        _before_after("transition", before_after.render_transition, cycle=CYCLE_MS),
        _before_after("slider-horizontal", before_after.render_slider_horizontal, cycle=CYCLE_MS),
        _before_after("slider-vertical", before_after.render_slider_vertical, cycle=CYCLE_MS),
        _before_after("slider-diagonal", before_after.render_slider_diagonal, cycle=CYCLE_MS),
        _post("text-only", social_posts.render_text_only, 0),
        _post("single", social_posts.render_single, 1),
        _post("duo", social_posts.render_duo, 2),
        _post("trio", social_posts.render_trio, 3),
        _post("quad", social_posts.render_quad, 4),
        _post("six", social_posts.render_six, 6),
        _post("eight", social_posts.render_eight, 8),
        _post("full-set", social_posts.render_eight, 8),
        _post("gm", social_posts.render_gm, 5),
        _post("quote", social_posts.render_quote, 1),
        _post("stats", social_posts.render_stats, 6),
        _post("giveaway", social_posts.render_giveaway, 1),
        _post("showcase", social_posts.render_showcase, 5),
        _post("before-after", social_posts.render_before_after_post, 2, ("nft", "before", "after")),
    )
}


def get_template(name: str) -> TemplateSpec:
    try:
        return TEMPLATES[name]
    except KeyError:
        raise InvalidRequestError(
            f"Unknown template '{name}'",
            details="Available: " + ", ".join(sorted(TEMPLATES)),
        ) from None


__all__ = [
    "ALL_RATIOS",
    "BEFORE_AFTER",
    "DIMENSIONS",
    "GRID",
    "POST",
    "TEMPLATES",
    "TemplateSpec",
    "get_template",
]

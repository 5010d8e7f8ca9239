"""Validation of incoming render requests into `OutputJob` values."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from nodes_media.config import RenderSettings, _parse_bool, _parse_color
from nodes_media.errors import InvalidRequestError
from nodes_media.grid import build_layout
from nodes_media.models import GridShape, OutputJob, SourceSpec
from nodes_media.templates import GRID, get_template

OUTPUT_FORMATS = ("png", "gif", "mp4")
MAX_TEXT_LENGTH = 500


def _optional_int(value: Any, field_name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidRequestError(f"'{field_name}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"'{field_name}' must be an integer") from None


def _text(payload: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return str(value).strip()[:MAX_TEXT_LENGTH]
    return ""


def parse_sources(raw: Any, allowed_roles) -> List[SourceSpec]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise InvalidRequestError("'sources' must be a list")

    specs: List[SourceSpec] = []
    for index, item in enumerate(raw):
        if isinstance(item, str):
            item = {"url": item}
        if not isinstance(item, Mapping):
            raise InvalidRequestError(f"Source {index} must be an object")
        role = str(item.get("role") or allowed_roles[0])
        if role not in allowed_roles:
            raise InvalidRequestError(
                f"Source {index} has unsupported role '{role}'",
                details="Allowed: " + ", ".join(allowed_roles),
            )
        url = item.get("url")
        specs.append(
            SourceSpec(
                url=str(url).strip() if url else None,
                role=role,
                row=_optional_int(item.get("row"), f"sources[{index}].row"),
                col=_optional_int(item.get("col"), f"sources[{index}].col"),
            )
        )
    return specs


def _legacy_before_after_sources(payload: Mapping[str, Any]) -> List[dict]:
    """Accept the ``beforeImage`` / ``afterImage`` shorthand."""
    sources = []
    if payload.get("beforeImage"):
        sources.append({"url": payload["beforeImage"], "role": "before"})
    if payload.get("afterImage"):
        sources.append({"url": payload["afterImage"], "role": "after"})
    return sources


def _parse_grid(raw: Any) -> GridShape:
    if not isinstance(raw, Mapping):
        raise InvalidRequestError("Grid template requires a 'grid' object with rows and cols")
    rows = _optional_int(raw.get("rows"), "grid.rows")
    cols = _optional_int(raw.get("cols"), "grid.cols")
    if rows is None or cols is None:
        raise InvalidRequestError("Grid template requires a 'grid' object with rows and cols")
    return GridShape(rows=rows, cols=cols, name=str(raw.get("name") or ""))


def parse_job(payload: Any, settings: Optional[RenderSettings] = None) -> OutputJob:
    """Validate a JSON request body; every problem is an `InvalidRequestError`."""
    settings = settings or RenderSettings()
    if not isinstance(payload, Mapping):
        raise InvalidRequestError("Request body must be a JSON object")

    template_name = payload.get("template")
    if not template_name:
        raise InvalidRequestError("'template' is required")
    spec = get_template(str(template_name))

    output_format = str(payload.get("outputFormat") or "png").lower()
    if output_format not in OUTPUT_FORMATS:
        raise InvalidRequestError(
            f"Unsupported output format '{output_format}'",
            details="Supported: " + ", ".join(OUTPUT_FORMATS),
        )

    aspect_ratio = str(payload.get("aspectRatio") or spec.aspect_ratios[0])
    if spec.family != GRID and aspect_ratio not in spec.aspect_ratios:
        raise InvalidRequestError(
            f"Template '{spec.name}' does not support aspect ratio '{aspect_ratio}'",
            details="Supported: " + ", ".join(spec.aspect_ratios),
        )

    raw_sources = payload.get("sources")
    if raw_sources is None and spec.required_roles:
        raw_sources = _legacy_before_after_sources(payload)
    sources = parse_sources(raw_sources, spec.roles)
    if len(sources) > spec.max_slots:
        raise InvalidRequestError(
            f"Template '{spec.name}' accepts at most {spec.max_slots} images",
            details=f"got {len(sources)}",
        )

    token_id = _text(payload, "tokenId")
    present_roles = {source.role for source in sources if source.url}
    missing_roles = [role for role in spec.required_roles if role not in present_roles]
    # The token's current image can stand in for "after"; nothing else can.
    if token_id:
        missing_roles = [role for role in missing_roles if role != "after"]
    if missing_roles:
        raise InvalidRequestError(
            "Both before and after images are required",
            details="missing: " + ", ".join(missing_roles),
        )

    grid = None
    if spec.family == GRID:
        grid = _parse_grid(payload.get("grid"))
        if not sources:
            raise InvalidRequestError("Grid needs at least one cell", details="'sources' is empty")
        build_layout(grid, sources)

    background = payload.get("bgColor")

    return OutputJob(
        template=spec.name,
        sources=tuple(sources),
        output_format=output_format,
        aspect_ratio=aspect_ratio,
        grid=grid,
        text=_text(payload, "text"),
        status_label=_text(payload, "statusLabel", "networkStatus"),
        token_id=token_id,
        background_color=_parse_color(background, (0, 0, 0)) if background else None,
        show_watermark=_parse_bool(payload.get("showWatermark"), True),
        fps=settings.fps,
        max_duration_ms=settings.max_duration_ms,
    )


__all__ = ["OUTPUT_FORMATS", "parse_job", "parse_sources"]

"""Configuration dataclasses and loading helpers for the media service."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple


def _parse_bool(value: Any, default: bool) -> bool:
    """Parse truthy/falsy values from multiple input types."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(value, (int, float)):
        return value != 0
    return default


def _parse_positive_int(value: Any, default: int) -> int:
    """Parse a positive integer with fallback to default."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _parse_float(value: Any, default: float) -> float:
    """Parse a floating point number with fallback to default."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _parse_color(value: Any, default: Tuple[int, int, int]) -> Tuple[int, int, int]:
    """Parse ``#rrggbb`` strings or RGB triplets into clamped RGB tuples."""
    if isinstance(value, (list, tuple)) and len(value) == 3:
        try:
            return tuple(max(0, min(255, int(channel))) for channel in value)
        except (TypeError, ValueError):
            return default

    if isinstance(value, str):
        hex_value = value.strip().lstrip("#")
        if len(hex_value) == 3:
            hex_value = "".join(ch * 2 for ch in hex_value)
        if len(hex_value) == 6:
            try:
                return (
                    int(hex_value[0:2], 16),
                    int(hex_value[2:4], 16),
                    int(hex_value[4:6], 16),
                )
            except ValueError:
                return default

    return default


@dataclass(frozen=True)
class RateLimitRule:
    """Sliding-window quota for one request bucket."""

    max_requests: int
    window_seconds: int


def _default_rate_limits() -> Dict[str, RateLimitRule]:
    return {
        "video": RateLimitRule(max_requests=5, window_seconds=300),
        "gif": RateLimitRule(max_requests=10, window_seconds=300),
        "image": RateLimitRule(max_requests=20, window_seconds=300),
        "proxy": RateLimitRule(max_requests=200, window_seconds=300),
    }


@dataclass(frozen=True)
class RenderSettings:
    """Timing and palette settings shared by every output job."""

    fps: int = 30
    max_duration_ms: int = 10000
    static_duration_ms: int = 1000
    gif_palette_colors: int = 256


@dataclass(frozen=True)
class VideoSettings:
    """Settings for the external ffmpeg encoder."""

    ffmpeg_binary: str = "ffmpeg"
    crf: int = 18
    preset: str = "fast"
    pixel_format: str = "yuv420p"
    timeout_seconds: int = 120
    temp_prefix: str = "nodes-video-"


@dataclass(frozen=True)
class FetchSettings:
    """Upstream image download settings."""

    http_timeout: float = 10.0
    user_agent: str = "nodes-media/1.0"
    max_download_bytes: int = 25 * 1024 * 1024


@dataclass(frozen=True)
class GuardSettings:
    """Per-IP throttling and global heavy-job ceiling."""

    rate_limits: Dict[str, RateLimitRule] = field(default_factory=_default_rate_limits)
    max_concurrent_heavy: int = 4
    busy_retry_seconds: int = 10
    sweep_interval_minutes: int = 5


@dataclass(frozen=True)
class ServiceSettings:
    """HTTP service, branding assets and collaborator endpoints."""

    host: str = "0.0.0.0"
    port: int = 8000
    assets_dir: Path = Path("assets")
    metadata_api_url: str = "https://nodes-metadata-api.10amstudios.xyz/metadata"
    legacy_image_base_url: str = "https://storage.googleapis.com/node-nft/innerstate"
    status_trait: str = "Network Status"
    log_file: Optional[Path] = Path("logs/nodes_media.log")
    log_level: str = "INFO"


@dataclass(frozen=True)
class Config:
    """Root configuration object for the media service."""

    render: RenderSettings = field(default_factory=RenderSettings)
    video: VideoSettings = field(default_factory=VideoSettings)
    fetch: FetchSettings = field(default_factory=FetchSettings)
    guard: GuardSettings = field(default_factory=GuardSettings)
    service: ServiceSettings = field(default_factory=ServiceSettings)


def _parse_render_settings(raw: Mapping[str, Any]) -> RenderSettings:
    default = RenderSettings()
    if not isinstance(raw, Mapping):
        return default
    return RenderSettings(
        fps=_parse_positive_int(raw.get("fps"), default.fps),
        max_duration_ms=_parse_positive_int(raw.get("max_duration_ms"), default.max_duration_ms),
        static_duration_ms=_parse_positive_int(
            raw.get("static_duration_ms"),
            default.static_duration_ms,
        ),
        gif_palette_colors=max(
            2,
            min(256, _parse_positive_int(raw.get("gif_palette_colors"), default.gif_palette_colors)),
        ),
    )


def _parse_video_settings(raw: Mapping[str, Any]) -> VideoSettings:
    default = VideoSettings()
    if not isinstance(raw, Mapping):
        return default
    return VideoSettings(
        ffmpeg_binary=str(raw.get("ffmpeg_binary", default.ffmpeg_binary)),
        crf=_parse_positive_int(raw.get("crf"), default.crf),
        preset=str(raw.get("preset", default.preset)),
        pixel_format=str(raw.get("pixel_format", default.pixel_format)),
        timeout_seconds=_parse_positive_int(raw.get("timeout_seconds"), default.timeout_seconds),
        temp_prefix=str(raw.get("temp_prefix", default.temp_prefix)),
    )


def _parse_fetch_settings(raw: Mapping[str, Any]) -> FetchSettings:
    default = FetchSettings()
    if not isinstance(raw, Mapping):
        return default
    timeout = _parse_float(raw.get("http_timeout"), default.http_timeout)
    return FetchSettings(
        http_timeout=timeout if timeout > 0 else default.http_timeout,
        user_agent=str(raw.get("user_agent", default.user_agent)),
        max_download_bytes=_parse_positive_int(
            raw.get("max_download_bytes"),
            default.max_download_bytes,
        ),
    )


def _parse_rate_limits(raw: Any) -> Dict[str, RateLimitRule]:
    limits = _default_rate_limits()
    if not isinstance(raw, Mapping):
        return limits
    for bucket, value in raw.items():
        if not isinstance(value, Mapping):
            continue
        current = limits.get(bucket, RateLimitRule(max_requests=20, window_seconds=300))
        limits[bucket] = RateLimitRule(
            max_requests=_parse_positive_int(value.get("max_requests"), current.max_requests),
            window_seconds=_parse_positive_int(value.get("window_seconds"), current.window_seconds),
        )
    return limits


def _parse_guard_settings(raw: Mapping[str, Any]) -> GuardSettings:
    default = GuardSettings()
    if not isinstance(raw, Mapping):
        return default
    return GuardSettings(
        rate_limits=_parse_rate_limits(raw.get("rate_limits")),
        max_concurrent_heavy=_parse_positive_int(
            raw.get("max_concurrent_heavy"),
            default.max_concurrent_heavy,
        ),
        busy_retry_seconds=_parse_positive_int(
            raw.get("busy_retry_seconds"),
            default.busy_retry_seconds,
        ),
        sweep_interval_minutes=_parse_positive_int(
            raw.get("sweep_interval_minutes"),
            default.sweep_interval_minutes,
        ),
    )


def _parse_service_settings(raw: Mapping[str, Any]) -> ServiceSettings:
    default = ServiceSettings()
    if not isinstance(raw, Mapping):
        return default
    log_file = raw.get("log_file", default.log_file)
    return ServiceSettings(
        host=str(raw.get("host", default.host)),
        port=_parse_positive_int(raw.get("port"), default.port),
        assets_dir=Path(raw.get("assets_dir", default.assets_dir)),
        metadata_api_url=str(raw.get("metadata_api_url", default.metadata_api_url)),
        legacy_image_base_url=str(
            raw.get("legacy_image_base_url", default.legacy_image_base_url)
        ),
        status_trait=str(raw.get("status_trait", default.status_trait)),
        log_file=Path(log_file) if log_file else None,
        log_level=str(raw.get("log_level", default.log_level)).upper(),
    )


def _load_env_config(env: Mapping[str, str]) -> Config:
    """Fallback configuration derived from environment variables."""
    render = _parse_render_settings({
        "fps": env.get("RENDER_FPS"),
        "max_duration_ms": env.get("RENDER_MAX_DURATION_MS"),
        "static_duration_ms": env.get("RENDER_STATIC_DURATION_MS"),
        "gif_palette_colors": env.get("GIF_PALETTE_COLORS"),
    })

    video = _parse_video_settings({
        "ffmpeg_binary": env.get("FFMPEG_BINARY", "ffmpeg"),
        "crf": env.get("VIDEO_CRF"),
        "preset": env.get("VIDEO_PRESET", "fast"),
        "pixel_format": env.get("VIDEO_PIXEL_FORMAT", "yuv420p"),
        "timeout_seconds": env.get("VIDEO_TIMEOUT_SECONDS"),
        "temp_prefix": env.get("VIDEO_TEMP_PREFIX", "nodes-video-"),
    })

    fetch = _parse_fetch_settings({
        "http_timeout": env.get("FETCH_TIMEOUT_SECONDS"),
        "user_agent": env.get("FETCH_USER_AGENT", "nodes-media/1.0"),
        "max_download_bytes": env.get("FETCH_MAX_BYTES"),
    })

    guard = _parse_guard_settings({
        "max_concurrent_heavy": env.get("MAX_CONCURRENT_HEAVY"),
        "busy_retry_seconds": env.get("BUSY_RETRY_SECONDS"),
        "sweep_interval_minutes": env.get("RATE_LIMIT_SWEEP_MINUTES"),
    })

    default_service = ServiceSettings()
    service = _parse_service_settings({
        "host": env.get("HOST", default_service.host),
        "port": env.get("PORT"),
        "assets_dir": env.get("ASSETS_DIR", str(default_service.assets_dir)),
        "metadata_api_url": env.get("METADATA_API_URL", default_service.metadata_api_url),
        "legacy_image_base_url": env.get(
            "LEGACY_IMAGE_BASE_URL",
            default_service.legacy_image_base_url,
        ),
        "status_trait": env.get("STATUS_TRAIT", default_service.status_trait),
        "log_file": env.get("LOG_FILE", str(default_service.log_file)),
        "log_level": env.get("LOG_LEVEL", default_service.log_level),
    })

    return Config(render=render, video=video, fetch=fetch, guard=guard, service=service)


def load_config(config_path: Path | str = "config.json", env: Mapping[str, str] | None = None) -> Config:
    """Load configuration from JSON file or environment defaults."""
    source_env = env if env is not None else os.environ
    path = Path(config_path)

    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        return Config(
            render=_parse_render_settings(data.get("render", {})),
            video=_parse_video_settings(data.get("video", {})),
            fetch=_parse_fetch_settings(data.get("fetch", {})),
            guard=_parse_guard_settings(data.get("guard", {})),
            service=_parse_service_settings(data.get("service", {})),
        )

    return _load_env_config(source_env)


__all__ = [
    "Config",
    "FetchSettings",
    "GuardSettings",
    "RateLimitRule",
    "RenderSettings",
    "ServiceSettings",
    "VideoSettings",
    "load_config",
    "_parse_bool",
    "_parse_color",
    "_parse_positive_int",
]

import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nodes_media.config import (  # noqa: E402
    Config,
    RateLimitRule,
    _parse_bool,
    _parse_color,
    load_config,
)


def test_defaults_match_service_limits():
    config = Config()

    assert config.render.fps == 30
    assert config.render.max_duration_ms == 10000
    assert config.render.static_duration_ms == 1000
    assert config.guard.max_concurrent_heavy == 4
    assert config.guard.rate_limits["video"] == RateLimitRule(5, 300)
    assert config.guard.rate_limits["gif"] == RateLimitRule(10, 300)
    assert config.guard.rate_limits["image"] == RateLimitRule(20, 300)
    assert config.guard.rate_limits["proxy"] == RateLimitRule(200, 300)
    assert config.video.timeout_seconds == 120


def test_load_config_from_json_file(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "render": {"fps": 24, "gif_palette_colors": 999},
                "video": {"crf": 23, "timeout_seconds": "45"},
                "guard": {
                    "rate_limits": {"video": {"max_requests": 2}},
                    "max_concurrent_heavy": 2,
                },
                "service": {"port": 9001, "log_file": None, "log_level": "debug"},
            }
        ),
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.render.fps == 24
    assert config.render.gif_palette_colors == 256
    assert config.video.crf == 23
    assert config.video.timeout_seconds == 45
    assert config.guard.rate_limits["video"] == RateLimitRule(2, 300)
    assert config.guard.rate_limits["gif"] == RateLimitRule(10, 300)
    assert config.guard.max_concurrent_heavy == 2
    assert config.service.port == 9001
    assert config.service.log_file is None
    assert config.service.log_level == "DEBUG"


def test_load_config_falls_back_to_environment(tmp_path):
    env = {
        "RENDER_FPS": "15",
        "MAX_CONCURRENT_HEAVY": "not-a-number",
        "FFMPEG_BINARY": "/opt/ffmpeg",
        "ASSETS_DIR": "/srv/assets",
        "STATUS_TRAIT": "Status",
    }

    config = load_config(tmp_path / "missing.json", env=env)

    assert config.render.fps == 15
    assert config.guard.max_concurrent_heavy == 4
    assert config.video.ffmpeg_binary == "/opt/ffmpeg"
    assert config.service.assets_dir == Path("/srv/assets")
    assert config.service.status_trait == "Status"


def test_parse_helpers_are_tolerant():
    assert _parse_bool("false", True) is False
    assert _parse_bool("YES", False) is True
    assert _parse_bool(None, True) is True
    assert _parse_color("#0a0b0c", (0, 0, 0)) == (10, 11, 12)
    assert _parse_color("fff", (0, 0, 0)) == (255, 255, 255)
    assert _parse_color([300, -5, 7], (0, 0, 0)) == (255, 0, 7)
    assert _parse_color("#zzzzzz", (1, 2, 3)) == (1, 2, 3)

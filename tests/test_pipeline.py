import io
import logging
import sys
from pathlib import Path

import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nodes_media.branding import BrandingAssets  # noqa: E402
from nodes_media.config import Config  # noqa: E402
from nodes_media.encoding import VideoEncoder  # noqa: E402
from nodes_media.errors import InvalidRequestError, NotFoundError  # noqa: E402
from nodes_media.grid import CELL_SIZE, GridLayout  # noqa: E402
from nodes_media.metadata import TokenMetadata  # noqa: E402
from nodes_media.pipeline import MediaPipeline, output_filename, rate_bucket  # noqa: E402
from nodes_media.requests_model import parse_job  # noqa: E402
from nodes_media.templates import get_template  # noqa: E402

LOGGER = logging.getLogger("pipeline-tests")


def _gif_bytes(frame_count, duration, size=(12, 12)):
    frames = [Image.new("RGB", size, (50 * index, 200 - 30 * index, 120)) for index in range(frame_count)]
    buffer = io.BytesIO()
    frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:], duration=duration, loop=0)
    return buffer.getvalue()


def _png_bytes(color=(200, 10, 10), size=(12, 12)):
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeFetcher:
    def __init__(self, payloads):
        self.payloads = payloads
        self.requested = []

    def fetch_bytes(self, url):
        self.requested.append(url)
        return self.payloads.get(url)


class CountingEncoder(VideoEncoder):
    def __init__(self):
        self.calls = 0
        self.frame_files = []
        self.frames = {}

    def encode(self, frame_dir, fps):
        self.calls += 1
        self.frame_files = sorted(path.name for path in frame_dir.glob("frame_*.png"))
        for name in self.frame_files:
            with Image.open(frame_dir / name) as image:
                self.frames[name] = image.convert("RGB")
        return b"mp4-bytes"


class FakeMetadata:
    def __init__(self, token=None, error=None):
        self.token = token
        self.error = error
        self.fetched = []

    def fetch(self, token_id):
        self.fetched.append(token_id)
        if self.error is not None:
            raise self.error
        return self.token

    def status_label(self, token):
        return token.trait("Network Status") or ""


def _pipeline(payloads, *, encoder=None, metadata=None):
    return MediaPipeline(
        Config(),
        LOGGER,
        fetcher=FakeFetcher(payloads),
        assets=BrandingAssets(),
        metadata=metadata or FakeMetadata(),
        video_encoder=encoder or CountingEncoder(),
        clock=lambda: 1700000000123,
    )


def _close(actual, expected, tolerance=8):
    return all(abs(a - b) <= tolerance for a, b in zip(actual, expected))


def _cell_centre(row, col):
    x, y = GridLayout.cell_origin(row, col)
    return x + CELL_SIZE // 2, y + CELL_SIZE // 2


def _three_by_three_job(output_format):
    return parse_job(
        {
            "template": "grid",
            "grid": {"rows": 3, "cols": 3},
            "outputFormat": output_format,
            "sources": [
                {"url": "https://img/slow.gif", "role": "nft", "row": 0, "col": 0},
                {"url": "https://img/fast.gif", "role": "nft", "row": 1, "col": 1},
                {"url": "https://img/still.png", "role": "nft", "row": 2, "col": 2},
            ],
        }
    )


THREE_BY_THREE = {
    "https://img/slow.gif": _gif_bytes(3, 100),
    "https://img/fast.gif": _gif_bytes(5, 80),
    "https://img/still.png": _png_bytes(),
}


def test_three_by_three_grid_exports_twelve_frames():
    encoder = CountingEncoder()
    pipeline = _pipeline(THREE_BY_THREE, encoder=encoder)

    media = pipeline.render(_three_by_three_job("mp4"))

    assert media.data == b"mp4-bytes"
    assert media.mime_type == "video/mp4"
    assert media.frame_count == 12
    assert media.duration_ms == 400
    assert encoder.frame_files == [f"frame_{index:04d}.png" for index in range(12)]
    assert media.filename == "nodes-grid-1700000000123.mp4"


def test_three_by_three_frames_show_every_source_in_its_cell():
    encoder = CountingEncoder()
    _pipeline(THREE_BY_THREE, encoder=encoder).render(_three_by_three_job("mp4"))

    # 200ms in: both GIFs are on their third frame.
    frame = encoder.frames["frame_0006.png"]
    assert _close(frame.getpixel(_cell_centre(0, 0)), (100, 140, 120))
    assert _close(frame.getpixel(_cell_centre(1, 1)), (100, 140, 120))
    assert _close(frame.getpixel(_cell_centre(2, 2)), (200, 10, 10))
    assert frame.getpixel(_cell_centre(0, 1)) == (0, 0, 0)

    for name, image in encoder.frames.items():
        for row, col in ((0, 0), (1, 1), (2, 2)):
            assert image.getpixel(_cell_centre(row, col)) not in ((0, 0, 0), (0x11, 0x11, 0x11)), name


def test_three_by_three_gif_contains_every_planned_frame():
    media = _pipeline(THREE_BY_THREE).render(_three_by_three_job("gif"))

    assert media.frame_count == 12
    with Image.open(io.BytesIO(media.data)) as image:
        assert image.n_frames == 12


def test_grid_png_export_draws_one_frame():
    media = _pipeline(THREE_BY_THREE).render(_three_by_three_job("png"))

    assert media.mime_type == "image/png"
    assert media.frame_count == 1
    with Image.open(io.BytesIO(media.data)) as image:
        assert image.size == (648, 648)
        rgb = image.convert("RGB")
        assert _close(rgb.getpixel(_cell_centre(0, 0)), (0, 200, 120))
        assert _close(rgb.getpixel(_cell_centre(1, 1)), (0, 200, 120))
        assert _close(rgb.getpixel(_cell_centre(2, 2)), (200, 10, 10))


def test_gif_export_of_static_sources_lasts_one_second():
    pipeline = _pipeline({"https://img/still.png": _png_bytes()})
    job = parse_job(
        {"template": "single", "outputFormat": "gif", "fps": 5, "sources": [{"url": "https://img/still.png"}]}
    )

    media = pipeline.render(job)

    assert media.data.startswith(b"GIF89a")
    assert media.duration_ms == 1000
    assert media.frame_count == 30
    with Image.open(io.BytesIO(media.data)) as image:
        assert image.n_frames == 30


def test_before_after_animations_run_at_least_one_second():
    payloads = {"https://img/b.gif": _gif_bytes(3, 100), "https://img/a.png": _png_bytes()}
    encoder = CountingEncoder()
    job = parse_job(
        {
            "template": "side-by-side",
            "outputFormat": "mp4",
            "sources": [
                {"url": "https://img/b.gif", "role": "before"},
                {"url": "https://img/a.png", "role": "after"},
            ],
        }
    )

    media = _pipeline(payloads, encoder=encoder).render(job)

    assert media.duration_ms == 1000
    assert media.frame_count == 30
    assert len(encoder.frame_files) == 30


def test_logo_cells_need_no_download():
    pipeline = _pipeline(THREE_BY_THREE)
    logo_only = parse_job(
        {
            "template": "grid",
            "grid": {"rows": 1, "cols": 2},
            "sources": [{"role": "logo", "row": 0, "col": 0}],
        }
    )
    mixed = parse_job(
        {
            "template": "grid",
            "grid": {"rows": 1, "cols": 2},
            "sources": [
                {"role": "logo", "row": 0, "col": 0},
                {"url": "https://img/still.png", "role": "nft", "row": 0, "col": 1},
            ],
        }
    )

    assert pipeline.render(logo_only).warnings == []
    assert pipeline.render(mixed).warnings == []
    assert pipeline.fetcher.requested == ["https://img/still.png"]


def test_all_sources_failing_is_a_bad_request_and_skips_encoder():
    encoder = CountingEncoder()
    pipeline = _pipeline({}, encoder=encoder)

    with pytest.raises(InvalidRequestError) as excinfo:
        pipeline.render(_three_by_three_job("mp4"))

    assert excinfo.value.status_code == 400
    assert encoder.calls == 0


def test_partial_failures_render_placeholders_with_warnings():
    payloads = dict(THREE_BY_THREE)
    del payloads["https://img/fast.gif"]

    media = _pipeline(payloads).render(_three_by_three_job("png"))

    assert media.data.startswith(b"\x89PNG")
    assert len(media.warnings) == 1
    assert "fast.gif" in media.warnings[0]


def test_fixed_cycle_templates_run_four_seconds():
    pipeline = _pipeline({})
    job = parse_job(
        {
            "template": "transition",
            "outputFormat": "gif",
            "sources": [
                {"url": "https://img/b.gif", "role": "before"},
                {"url": "https://img/a.gif", "role": "after"},
            ],
        }
    )
    spec = get_template(job.template)

    timeline = pipeline.timeline_for(job, spec, [])

    assert timeline.duration_ms == 4000
    assert timeline.total_frames == 120


def test_token_resolves_missing_after_image_and_status():
    token = TokenMetadata(
        name="NODE #42",
        image="https://img/current.gif",
        attributes=[{"trait_type": "Network Status", "value": "Digital Renaissance"}],
    )
    metadata = FakeMetadata(token=token)
    payloads = {"https://img/legacy.png": _png_bytes(), "https://img/current.gif": _gif_bytes(2, 100)}
    pipeline = _pipeline(payloads, metadata=metadata)
    job = parse_job(
        {
            "template": "side-by-side",
            "tokenId": "42",
            "sources": [{"url": "https://img/legacy.png", "role": "before"}],
        }
    )

    resolved = pipeline.resolve_token_sources(job, get_template(job.template))
    media = pipeline.render(job)

    assert metadata.fetched == ["42", "42"]
    assert resolved.status_label == "Digital Renaissance"
    assert [(s.role, s.url) for s in resolved.sources][-1] == ("after", "https://img/current.gif")
    assert media.filename == "nodes-side-by-side-42-1700000000123.png"
    assert "https://img/current.gif" in pipeline.fetcher.requested


def test_token_resolution_failure_is_a_bad_request():
    pipeline = _pipeline({}, metadata=FakeMetadata(error=NotFoundError("No metadata for token 9")))
    job = parse_job(
        {
            "template": "vertical",
            "tokenId": "9",
            "sources": [{"url": "https://img/legacy.png", "role": "before"}],
        }
    )

    with pytest.raises(InvalidRequestError):
        pipeline.render(job)


def test_rate_bucket_and_filename_helpers():
    job = parse_job({"template": "text-only", "text": "gm", "outputFormat": "mp4"})

    assert rate_bucket(job) == "video"
    assert output_filename(job, "mp4", 5) == "nodes-text-only-5.mp4"

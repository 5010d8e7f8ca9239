import io
import sys
from pathlib import Path

from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nodes_media.gif_decoder import decode_gif, normalize_delay  # noqa: E402


def _gif_bytes(colors, duration, size=(6, 4)):
    frames = [Image.new("RGB", size, color) for color in colors]
    buffer = io.BytesIO()
    frames[0].save(
        buffer,
        format="GIF",
        save_all=True,
        append_images=frames[1:],
        duration=duration,
        loop=0,
    )
    return buffer.getvalue()


def test_normalize_delay_matches_browser_clamping():
    assert normalize_delay(0) == 50
    assert normalize_delay(None) == 50
    assert normalize_delay(1) == 20
    assert normalize_delay(10) == 20
    assert normalize_delay(19) == 20
    assert normalize_delay(20) == 20
    assert normalize_delay(100) == 100


def test_decode_gif_returns_frames_with_timing():
    data = _gif_bytes([(255, 0, 0), (0, 255, 0), (0, 0, 255)], duration=100)

    decoded = decode_gif(data)

    assert decoded is not None
    assert (decoded.width, decoded.height) == (6, 4)
    assert len(decoded.frames) == 3
    assert [frame.delay_ms for frame in decoded.frames] == [100, 100, 100]
    for frame in decoded.frames:
        dims = frame.dims
        assert dims.left + dims.width <= decoded.width
        assert dims.top + dims.height <= decoded.height
        assert len(frame.patch) == dims.width * dims.height * 4


def test_decode_gif_rejects_non_gif_payloads():
    png = io.BytesIO()
    Image.new("RGB", (3, 3), (1, 2, 3)).save(png, format="PNG")

    assert decode_gif(b"") is None
    assert decode_gif(None) is None
    assert decode_gif(b"definitely not an image") is None
    assert decode_gif(png.getvalue()) is None


def test_decode_gif_survives_truncated_payload():
    data = _gif_bytes([(255, 0, 0), (0, 255, 0), (0, 0, 255)], duration=100, size=(32, 32))

    decoded = decode_gif(data[: len(data) // 2])

    assert decoded is None or len(decoded.frames) <= 3

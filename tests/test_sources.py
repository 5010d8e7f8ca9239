import io
import logging
import sys
from pathlib import Path

import requests
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nodes_media.config import FetchSettings  # noqa: E402
from nodes_media.fetching import ImageFetcher  # noqa: E402
from nodes_media.models import SourceSpec  # noqa: E402
from nodes_media.sources import SourceLoader, decode_static  # noqa: E402

LOGGER = logging.getLogger("sources-tests")


def _gif_bytes(frame_count, duration, size=(4, 4)):
    frames = [Image.new("RGB", size, (40 * index, 255 - 40 * index, 90)) for index in range(frame_count)]
    buffer = io.BytesIO()
    frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:], duration=duration, loop=0)
    return buffer.getvalue()


def _png_bytes(color=(10, 20, 30), size=(5, 3)):
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


class FakeHttpResponse:
    def __init__(self, content=b"", headers=None, error=None, chunk_size=4):
        self.content = content
        self.headers = headers or {}
        self._error = error
        self.chunk_size = chunk_size
        self.chunks_read = 0
        self.closed = False

    def raise_for_status(self):
        if self._error is not None:
            raise self._error

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.content), self.chunk_size):
            self.chunks_read += 1
            yield self.content[start : start + self.chunk_size]

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, outcome):
        self.outcome = outcome
        self.kwargs = None

    def get(self, url, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_loader_classifies_animated_static_and_missing():
    fetcher = FakeFetcher(
        {
            "https://a/anim.gif": _gif_bytes(3, 100),
            "https://a/still.png": _png_bytes(),
            "https://a/garbage": b"<html>nope</html>",
        }
    )
    loader = SourceLoader(fetcher, LOGGER)

    anim, still, garbage, unreachable = loader.load_all(
        [
            SourceSpec(url="https://a/anim.gif", role="nft"),
            SourceSpec(url="https://a/still.png", role="nft"),
            SourceSpec(url="https://a/garbage", role="nft"),
            SourceSpec(url="https://a/404.gif", role="nft"),
        ]
    )

    assert anim.is_animated
    assert anim.animation.frame_count == 3
    assert anim.animation.total_duration_ms == 300
    assert still.kind == "static"
    assert still.bitmap.shape == (3, 5, 4)
    assert garbage.is_missing
    assert unreachable.is_missing


def test_loader_fetches_each_url_once():
    fetcher = FakeFetcher({"https://a/x.png": _png_bytes()})
    loader = SourceLoader(fetcher, LOGGER)

    loader.load_all([SourceSpec(url="https://a/x.png", role="nft")] * 3)

    assert fetcher.requested == ["https://a/x.png"]


def test_loader_treats_empty_url_as_missing_without_fetching():
    fetcher = FakeFetcher({})
    source = SourceLoader(fetcher, LOGGER).load(None)

    assert source.is_missing
    assert fetcher.requested == []


def test_decode_static_reads_first_frame_of_any_format():
    bitmap = decode_static(_png_bytes((1, 2, 3)))

    assert bitmap.shape == (3, 5, 4)
    assert tuple(bitmap[0, 0]) == (1, 2, 3, 255)
    assert decode_static(b"junk") is None


def test_fetcher_returns_none_on_transport_errors():
    fetcher = ImageFetcher(LOGGER, session=FakeSession(requests.Timeout("slow")))
    assert fetcher.fetch_bytes("https://a/slow.gif") is None

    fetcher = ImageFetcher(LOGGER, session=FakeSession(FakeHttpResponse(error=requests.HTTPError("404"))))
    assert fetcher.fetch_bytes("https://a/missing.gif") is None


def test_fetcher_enforces_size_limit_and_timeout():
    session = FakeSession(FakeHttpResponse(content=b"x" * 11, headers={"Content-Length": "11"}))
    fetcher = ImageFetcher(LOGGER, FetchSettings(http_timeout=3.0, max_download_bytes=10), session=session)

    assert fetcher.fetch_bytes("https://a/big.gif") is None
    assert session.kwargs["timeout"] == 3.0

    session.outcome = FakeHttpResponse(content=b"GIF89a")
    assert fetcher.fetch_bytes("https://a/small.gif") == b"GIF89a"
    assert fetcher.fetch_bytes("") is None


def test_fetcher_stops_reading_once_an_undeclared_body_passes_the_limit():
    response = FakeHttpResponse(content=b"x" * 400)
    session = FakeSession(response)
    fetcher = ImageFetcher(LOGGER, FetchSettings(max_download_bytes=10), session=session)

    assert fetcher.fetch_bytes("https://a/huge.gif") is None
    assert session.kwargs["stream"] is True
    assert response.chunks_read == 3
    assert response.closed

"""Output timelines and the PNG / GIF / MP4 encoding strategies."""

from __future__ import annotations

import io
import logging
import shutil
import subprocess
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional

from PIL import Image

from nodes_media.config import RenderSettings, VideoSettings
from nodes_media.errors import EncoderError, InvalidRequestError
from nodes_media.models import AnimatedSource
from nodes_media.progress import FrameProgress
from nodes_media.surface import Surface

FrameRenderer = Callable[[int, float], Surface]

FRAME_PATTERN = "frame_%04d.png"
OUTPUT_NAME = "output.mp4"
STDERR_TAIL_CHARS = 2000


# ----------------------------------------------------------------------
# Timeline planning
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Timeline:
    duration_ms: int
    fps: int
    total_frames: int

    def time_at(self, index: int) -> float:
        return index * 1000.0 / self.fps

    @classmethod
    def still(cls, fps: int = 30) -> "Timeline":
        return cls(duration_ms=0, fps=fps, total_frames=1)


def governing_duration(
    sources: Iterable[AnimatedSource],
    *,
    fixed_cycle_ms: Optional[int] = None,
    max_duration_ms: int = 10000,
    static_duration_ms: int = 1000,
    min_duration_ms: int = 0,
) -> int:
    """Length of an animated export in milliseconds.

    Fixed-cycle templates always run exactly one cycle. Otherwise the longest
    animated source governs, raised to ``min_duration_ms`` and capped at
    ``max_duration_ms``; with no animated source at all the export lasts
    ``static_duration_ms``.
    """
    if fixed_cycle_ms:
        return fixed_cycle_ms
    durations = [source.animation.total_duration_ms for source in sources if source.is_animated]
    if not durations:
        return min(max_duration_ms, static_duration_ms)
    return max(1, min(max_duration_ms, max(min_duration_ms, *durations)))


def total_frames_for(duration_ms: int, fps: int) -> int:
    """``ceil(duration_ms / (1000 / fps))`` in exact integer arithmetic."""
    return max(1, -(-duration_ms * fps // 1000))


def plan_timeline(
    sources: Iterable[AnimatedSource],
    settings: RenderSettings,
    *,
    fps: Optional[int] = None,
    fixed_cycle_ms: Optional[int] = None,
    max_duration_ms: Optional[int] = None,
    min_duration_ms: int = 0,
) -> Timeline:
    fps = fps or settings.fps
    duration = governing_duration(
        sources,
        fixed_cycle_ms=fixed_cycle_ms,
        max_duration_ms=max_duration_ms or settings.max_duration_ms,
        static_duration_ms=settings.static_duration_ms,
        min_duration_ms=min_duration_ms,
    )
    return Timeline(duration_ms=duration, fps=fps, total_frames=total_frames_for(duration, fps))


# ----------------------------------------------------------------------
# Scratch space and the external video encoder
# ----------------------------------------------------------------------


class TempWorkspace:
    """Per-job scratch directory, removed on every exit path."""

    def __init__(self, prefix: str = "nodes-video-", logger: Optional[logging.Logger] = None) -> None:
        self.prefix = prefix
        self.logger = logger or logging.getLogger(__name__)
        self.path: Optional[Path] = None

    def __enter__(self) -> "TempWorkspace":
        self.path = Path(tempfile.mkdtemp(prefix=self.prefix))
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.path is None:
            return
        shutil.rmtree(self.path, ignore_errors=True)
        if self.path.exists():
            self.logger.error("Failed to remove temp workspace %s", self.path)

    def frame_path(self, index: int) -> Path:
        if self.path is None:
            raise RuntimeError("Workspace is not open")
        return self.path / (FRAME_PATTERN % index)


class VideoEncoder(ABC):
    """Turns a directory of numbered PNG frames into container bytes."""

    @abstractmethod
    def encode(self, frame_dir: Path, fps: int) -> bytes:
        raise NotImplementedError


def _stderr_tail(stderr: Optional[bytes]) -> Optional[str]:
    if not stderr:
        return None
    return stderr.decode("utf-8", errors="replace")[-STDERR_TAIL_CHARS:].strip() or None


class FfmpegVideoEncoder(VideoEncoder):
    """H.264 MP4 encoding through the ``ffmpeg`` binary."""

    def __init__(self, settings: Optional[VideoSettings] = None, logger: Optional[logging.Logger] = None) -> None:
        self.settings = settings or VideoSettings()
        self.logger = logger or logging.getLogger(__name__)

    def build_command(self, binary: str, frame_dir: Path, fps: int, output_path: Path) -> List[str]:
        return [
            binary,
            "-y",
            "-framerate",
            str(fps),
            "-i",
            str(frame_dir / FRAME_PATTERN),
            "-c:v",
            "libx264",
            "-pix_fmt",
            self.settings.pixel_format,
            "-crf",
            str(self.settings.crf),
            "-preset",
            self.settings.preset,
            str(output_path),
        ]

    def encode(self, frame_dir: Path, fps: int) -> bytes:
        binary = shutil.which(self.settings.ffmpeg_binary)
        if binary is None:
            raise EncoderError(
                "ffmpeg not found on PATH",
                details=f"looked for '{self.settings.ffmpeg_binary}'",
            )

        output_path = frame_dir / OUTPUT_NAME
        cmd = self.build_command(binary, frame_dir, fps, output_path)
        self.logger.info("Encoding video with ffmpeg (%s fps)", fps)

        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.settings.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise EncoderError(
                f"ffmpeg timed out after {self.settings.timeout_seconds}s",
                details=_stderr_tail(exc.stderr),
            ) from exc
        except OSError as exc:
            raise EncoderError("Failed to start ffmpeg", details=str(exc)) from exc

        if result.returncode != 0:
            raise EncoderError(
                f"ffmpeg exited with status {result.returncode}",
                details=_stderr_tail(result.stderr),
            )
        if not output_path.exists():
            raise EncoderError("ffmpeg reported success but wrote no output")

        data = output_path.read_bytes()
        self.logger.info("Video created: %s bytes", len(data))
        return data


# ----------------------------------------------------------------------
# Strategies
# ----------------------------------------------------------------------


class EncodingStrategy(ABC):
    output_format = ""
    mime_type = ""
    extension = ""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    def frames(self, timeline: Timeline, render: FrameRenderer) -> Iterator[Surface]:
        """Render frames strictly in increasing time order."""
        progress = FrameProgress(self.logger, timeline.total_frames, self.output_format.upper())
        for index in range(timeline.total_frames):
            surface = render(index, timeline.time_at(index))
            progress.advance(index + 1)
            yield surface

    @abstractmethod
    def encode(self, timeline: Timeline, render: FrameRenderer) -> bytes:
        raise NotImplementedError


class PngStrategy(EncodingStrategy):
    output_format = "png"
    mime_type = "image/png"
    extension = "png"

    def encode(self, timeline: Timeline, render: FrameRenderer) -> bytes:
        return render(0, 0.0).encode_png()


class GifStrategy(EncodingStrategy):
    output_format = "gif"
    mime_type = "image/gif"
    extension = "gif"

    def __init__(self, palette_colors: int = 256, logger: Optional[logging.Logger] = None) -> None:
        super().__init__(logger)
        self.palette_colors = palette_colors

    def _to_image(self, surface: Surface, index: int) -> Image.Image:
        """Quantize one frame, leaving a spare palette slot.

        The spare slot repeats the colour of pixel (0, 0); odd frames draw that
        pixel through it so identical neighbours still differ by index and the
        writer keeps every frame.
        """
        image = Image.fromarray(surface.pixels).quantize(colors=self.palette_colors - 1)
        palette = image.getpalette()
        spare = min(len(palette) // 3, self.palette_colors - 1)
        corner = image.getpixel((0, 0))
        image.putpalette(palette[: spare * 3] + palette[corner * 3 : corner * 3 + 3])
        if index % 2:
            image.putpixel((0, 0), spare)
        return image

    def encode(self, timeline: Timeline, render: FrameRenderer) -> bytes:
        images = (self._to_image(surface, index) for index, surface in enumerate(self.frames(timeline, render)))
        first = next(images)
        buffer = io.BytesIO()
        first.save(
            buffer,
            format="GIF",
            save_all=True,
            append_images=images,
            duration=int(round(1000 / timeline.fps)),
            loop=0,
            disposal=1,
            optimize=False,
        )
        return buffer.getvalue()


class Mp4Strategy(EncodingStrategy):
    output_format = "mp4"
    mime_type = "video/mp4"
    extension = "mp4"

    def __init__(
        self,
        encoder: VideoEncoder,
        temp_prefix: str = "nodes-video-",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(logger)
        self.encoder = encoder
        self.temp_prefix = temp_prefix

    def encode(self, timeline: Timeline, render: FrameRenderer) -> bytes:
        with TempWorkspace(self.temp_prefix, self.logger) as workspace:
            for index, surface in enumerate(self.frames(timeline, render)):
                workspace.frame_path(index).write_bytes(surface.encode_png())
            return self.encoder.encode(workspace.path, timeline.fps)


def strategy_for(
    output_format: str,
    *,
    render_settings: RenderSettings,
    video_settings: VideoSettings,
    video_encoder: Optional[VideoEncoder] = None,
    logger: Optional[logging.Logger] = None,
) -> EncodingStrategy:
    if output_format == "png":
        return PngStrategy(logger)
    if output_format == "gif":
        return GifStrategy(render_settings.gif_palette_colors, logger)
    if output_format == "mp4":
        encoder = video_encoder or FfmpegVideoEncoder(video_settings, logger)
        return Mp4Strategy(encoder, video_settings.temp_prefix, logger)
    raise InvalidRequestError(f"Unsupported output format '{output_format}'")


__all__ = [
    "EncodingStrategy",
    "FfmpegVideoEncoder",
    "GifStrategy",
    "Mp4Strategy",
    "PngStrategy",
    "TempWorkspace",
    "Timeline",
    "VideoEncoder",
    "governing_duration",
    "plan_timeline",
    "strategy_for",
    "total_frames_for",
]

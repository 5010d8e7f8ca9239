"""Job orchestration: sources in, encoded media out."""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Callable, List, Optional, Sequence

from nodes_media.branding import BrandingAssets
from nodes_media.config import Config
from nodes_media.encoding import FrameRenderer, Timeline, VideoEncoder, plan_timeline, strategy_for
from nodes_media.errors import InvalidRequestError, MediaError
from nodes_media.fetching import ImageFetcher
from nodes_media.metadata import MetadataClient
from nodes_media.models import AnimatedSource, OutputJob, RenderedMedia, SourceSpec
from nodes_media.sampler import bitmap_at
from nodes_media.scene import FrameContext, Slot
from nodes_media.sources import SourceLoader
from nodes_media.surface import Surface
from nodes_media.templates import BEFORE_AFTER, TemplateSpec, get_template

BUCKET_BY_FORMAT = {"mp4": "video", "gif": "gif", "png": "image"}


def rate_bucket(job: OutputJob) -> str:
    return BUCKET_BY_FORMAT.get(job.output_format, "image")


def _millis() -> int:
    return int(time.time() * 1000)


def output_filename(job: OutputJob, extension: str, timestamp_ms: int) -> str:
    parts = ["nodes", job.template]
    if job.token_id:
        parts.append(job.token_id)
    parts.append(str(timestamp_ms))
    return "-".join(parts) + "." + extension


class MediaPipeline:
    """Render validated jobs into PNG, GIF or MP4 bytes.

    Admission control lives with the caller; the pipeline itself only
    fetches, samples, draws and encodes.
    """

    def __init__(
        self,
        config: Config,
        logger: logging.Logger,
        *,
        fetcher: Optional[ImageFetcher] = None,
        assets: Optional[BrandingAssets] = None,
        metadata: Optional[MetadataClient] = None,
        video_encoder: Optional[VideoEncoder] = None,
        clock: Callable[[], int] = _millis,
    ) -> None:
        self.config = config
        self.logger = logger
        self.fetcher = fetcher or ImageFetcher(logger, config.fetch)
        self.assets = assets if assets is not None else BrandingAssets.load(config.service.assets_dir)
        self.metadata = metadata or MetadataClient(config.service, logger)
        self.video_encoder = video_encoder
        self.clock = clock

    # ------------------------------------------------------------------
    # Source resolution
    # ------------------------------------------------------------------

    def resolve_token_sources(self, job: OutputJob, spec: TemplateSpec) -> OutputJob:
        """Fill a missing ``after`` image and status label from token metadata."""
        if not job.token_id or "after" not in spec.required_roles:
            return job
        if any(source.role == "after" and source.url for source in job.sources):
            return job

        try:
            token = self.metadata.fetch(job.token_id)
        except MediaError as exc:
            raise InvalidRequestError(
                "Both before and after images are required",
                details=f"could not resolve token {job.token_id}: {exc.message}",
            ) from exc
        if not token.image:
            raise InvalidRequestError(
                "Both before and after images are required",
                details=f"token {job.token_id} has no image",
            )

        self.logger.info("Resolved current image for token %s", job.token_id)
        sources = [source for source in job.sources if source.role != "after"]
        sources.append(SourceSpec(url=token.image, role="after"))
        return dataclasses.replace(
            job,
            sources=tuple(sources),
            status_label=job.status_label or self.metadata.status_label(token),
        )

    def load_sources(self, job: OutputJob) -> List[AnimatedSource]:
        loader = SourceLoader(self.fetcher, self.logger)
        sources = loader.load_all(job.sources)
        wanted = [(spec, source) for spec, source in zip(job.sources, sources) if spec.needs_image]
        if wanted and all(source.is_missing for _, source in wanted):
            raise InvalidRequestError(
                "None of the source images could be loaded",
                details=", ".join(spec.url or "<empty>" for spec, _ in wanted),
            )
        return sources

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def timeline_for(self, job: OutputJob, spec: TemplateSpec, sources: Sequence[AnimatedSource]) -> Timeline:
        if not job.is_animated_output:
            return Timeline.still(job.fps)
        return plan_timeline(
            sources,
            self.config.render,
            fps=job.fps,
            fixed_cycle_ms=spec.fixed_cycle_ms,
            max_duration_ms=job.max_duration_ms,
            min_duration_ms=self.config.render.static_duration_ms if spec.family == BEFORE_AFTER else 0,
        )

    def frame_renderer(
        self,
        job: OutputJob,
        spec: TemplateSpec,
        sources: Sequence[AnimatedSource],
    ) -> FrameRenderer:
        width, height = spec.canvas_size(job)
        typeface = self.assets.typeface()
        background = job.background_color or (0, 0, 0)

        def render(index: int, time_ms: float) -> Surface:
            surface = Surface(width, height, background, typeface=typeface)
            slots = [Slot(source_spec, bitmap_at(source, time_ms)) for source_spec, source in zip(job.sources, sources)]
            spec.renderer(surface, FrameContext(job, self.assets, slots, time_ms, index))
            return surface

        return render

    def render(self, job: OutputJob) -> RenderedMedia:
        spec = get_template(job.template)
        job = self.resolve_token_sources(job, spec)
        sources = self.load_sources(job)
        warnings = [
            f"Could not load {spec.url or '<empty>'}; drew a placeholder"
            for spec, source in zip(job.sources, sources)
            if spec.needs_image and source.is_missing
        ]

        timeline = self.timeline_for(job, spec, sources)
        strategy = strategy_for(
            job.output_format,
            render_settings=self.config.render,
            video_settings=self.config.video,
            video_encoder=self.video_encoder,
            logger=self.logger,
        )
        self.logger.info(
            "Rendering %s as %s: %s frames over %sms",
            job.template,
            job.output_format,
            timeline.total_frames,
            timeline.duration_ms,
        )
        data = strategy.encode(timeline, self.frame_renderer(job, spec, sources))
        self.logger.info("Rendered %s (%s bytes)", job.template, len(data))

        return RenderedMedia(
            data=data,
            mime_type=strategy.mime_type,
            filename=output_filename(job, strategy.extension, self.clock()),
            frame_count=timeline.total_frames,
            duration_ms=timeline.duration_ms,
            warnings=warnings,
        )


__all__ = ["BUCKET_BY_FORMAT", "MediaPipeline", "output_filename", "rate_bucket"]

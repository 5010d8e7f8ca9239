"""
Composition of NFT imagery into grid montages, before/after comparisons and
social posts, exported as PNG, animated GIF or MP4.
"""

from .errors import InvalidRequestError, MediaError, RateLimitedError, ServerBusyError
from .models import AnimatedSource, OutputJob, RenderedMedia, SourceSpec
from .pipeline import MediaPipeline
from .requests_model import parse_job

__all__ = [
    "AnimatedSource",
    "InvalidRequestError",
    "MediaError",
    "MediaPipeline",
    "OutputJob",
    "RateLimitedError",
    "RenderedMedia",
    "ServerBusyError",
    "SourceSpec",
    "parse_job",
]

"""Error taxonomy for the media composition service."""

from __future__ import annotations

from typing import Any, Dict, Optional


class MediaError(Exception):
    """Base class for errors surfaced to callers as JSON payloads."""

    status_code = 500

    def __init__(self, message: str, *, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidRequestError(MediaError):
    """The request cannot be processed as given and must be corrected."""

    status_code = 400


class NotFoundError(MediaError):
    status_code = 404


class UpstreamError(MediaError):
    """An upstream collaborator (image host, metadata API) failed."""

    status_code = 502


class EncoderError(MediaError):
    """The frame encoder (in-process or ffmpeg) failed."""

    status_code = 500


class CapacityError(MediaError):
    """Base class for retryable capacity rejections."""

    def __init__(
        self,
        message: str,
        *,
        retry_after_seconds: int,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details=details)
        self.retry_after_seconds = max(1, int(retry_after_seconds))

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["retryAfterSeconds"] = self.retry_after_seconds
        return payload


class RateLimitedError(CapacityError):
    status_code = 429


class ServerBusyError(CapacityError):
    status_code = 503


__all__ = [
    "CapacityError",
    "EncoderError",
    "InvalidRequestError",
    "MediaError",
    "NotFoundError",
    "RateLimitedError",
    "ServerBusyError",
    "UpstreamError",
]

"""Remote image retrieval for source URLs."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import requests

from nodes_media.config import FetchSettings

CHUNK_SIZE = 64 * 1024


class ImageFetcher:
    """Download image payloads, reporting failures as ``None``."""

    def __init__(
        self,
        logger: logging.Logger,
        settings: Optional[FetchSettings] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.logger = logger
        self.settings = settings or FetchSettings()
        self.session = session or requests.Session()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        return {"User-Agent": self.settings.user_agent, "Accept": "image/*,*/*;q=0.8"}

    def _read_capped(self, response: requests.Response, url: str) -> Optional[bytes]:
        """Read a streamed body, giving up as soon as it passes the size cap."""
        limit = self.settings.max_download_bytes
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > limit:
            self.logger.warning("Refusing %s: declared size %s exceeds %s bytes", url, declared, limit)
            return None

        chunks = []
        received = 0
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            received += len(chunk)
            if received > limit:
                self.logger.warning("Refusing %s: payload exceeds %s bytes", url, limit)
                return None
            chunks.append(chunk)
        return b"".join(chunks)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fetch_response(self, url: str, *, stream: bool = False) -> requests.Response:
        """Perform the GET and raise on transport or HTTP errors."""
        response = self.session.get(
            url,
            headers=self._headers(),
            timeout=self.settings.http_timeout,
            stream=stream,
        )
        response.raise_for_status()
        return response

    def fetch_bytes(self, url: Optional[str]) -> Optional[bytes]:
        if not url:
            return None
        try:
            response = self.fetch_response(url, stream=True)
            try:
                data = self._read_capped(response, url)
            finally:
                response.close()
        except requests.Timeout:
            self.logger.warning("Timed out fetching %s after %ss", url, self.settings.http_timeout)
            return None
        except requests.RequestException as exc:
            self.logger.warning("Failed to fetch %s: %s", url, exc)
            return None

        if data is None:
            return None
        if not data:
            self.logger.warning("Empty payload from %s", url)
            return None
        return data


__all__ = ["ImageFetcher"]

"""Token metadata lookups and legacy image probing."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from nodes_media.config import ServiceSettings
from nodes_media.errors import InvalidRequestError, NotFoundError, UpstreamError

LEGACY_PROBE_TIMEOUT = 5.0
LEGACY_FORMATS = ("gif", "png")

_TOKEN_ID_RE = re.compile(r"^\d+$")


@dataclass(frozen=True)
class TokenMetadata:
    name: str = ""
    image: Optional[str] = None
    attributes: List[Dict[str, Any]] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, payload: Any) -> "TokenMetadata":
        if not isinstance(payload, dict):
            raise UpstreamError("Metadata response was not a JSON object")
        attributes = payload.get("attributes")
        if not isinstance(attributes, list):
            attributes = []
        image = payload.get("image") or payload.get("image_url")
        return cls(
            name=str(payload.get("name") or ""),
            image=str(image) if image else None,
            attributes=[item for item in attributes if isinstance(item, dict)],
            raw=payload,
        )

    def trait(self, trait_type: str) -> Optional[str]:
        """Case-insensitive trait lookup."""
        wanted = trait_type.lower()
        for attribute in self.attributes:
            name = attribute.get("trait_type")
            if isinstance(name, str) and name.lower() == wanted:
                value = attribute.get("value")
                return str(value) if value is not None else None
        return None


@dataclass(frozen=True)
class LegacyImage:
    url: str
    format: str

    def to_payload(self) -> Dict[str, str]:
        return {
            "url": self.url,
            "format": self.format,
            "proxyUrl": "/api/proxy-gif?url=" + quote(self.url, safe=""),
        }


def validate_token_id(token_id: Any) -> str:
    text = str(token_id or "").strip()
    if not _TOKEN_ID_RE.match(text):
        raise InvalidRequestError("Valid numeric tokenId required")
    return text


def status_label(metadata: TokenMetadata, trait_type: str) -> str:
    return metadata.trait(trait_type) or ""


class MetadataClient:
    """Thin client for the metadata API and the legacy image bucket."""

    def __init__(
        self,
        settings: Optional[ServiceSettings] = None,
        logger: Optional[logging.Logger] = None,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.settings = settings or ServiceSettings()
        self.logger = logger or logging.getLogger(__name__)
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(self, token_id: Any) -> TokenMetadata:
        token = validate_token_id(token_id)
        url = f"{self.settings.metadata_api_url.rstrip('/')}/{token}"
        try:
            response = self.session.get(url, headers={"Accept": "application/json"}, timeout=self.timeout)
        except requests.RequestException as exc:
            self.logger.error("Metadata request for token %s failed: %s", token, exc)
            raise UpstreamError("Failed to fetch metadata", details=str(exc)) from exc

        if response.status_code == 404:
            raise NotFoundError(f"No metadata for token {token}")
        if not response.ok:
            raise UpstreamError(f"Failed to fetch metadata: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError("Metadata response was not valid JSON") from exc
        return TokenMetadata.from_payload(payload)

    def status_label(self, metadata: TokenMetadata) -> str:
        return status_label(metadata, self.settings.status_trait)

    def _probe(self, url: str) -> bool:
        try:
            response = self.session.head(url, timeout=LEGACY_PROBE_TIMEOUT, allow_redirects=True)
        except requests.RequestException as exc:
            self.logger.debug("Legacy probe %s failed: %s", url, exc)
            return False
        return response.ok

    def resolve_legacy_image(self, token_id: Any) -> LegacyImage:
        """Find the pre-evolution image for a token, preferring the GIF."""
        token = validate_token_id(token_id)
        base = self.settings.legacy_image_base_url.rstrip("/")
        for extension in LEGACY_FORMATS:
            url = f"{base}/{token}.{extension}"
            if self._probe(url):
                return LegacyImage(url=url, format=extension)
        raise NotFoundError("No legacy image found", details=f"token {token}")


__all__ = [
    "LegacyImage",
    "MetadataClient",
    "TokenMetadata",
    "status_label",
    "validate_token_id",
]

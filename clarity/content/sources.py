"""
Content index sources.

A source fetches the raw content index document. The repository owns
caching, timeouts and fallbacks; sources only fetch and decode, raising
ContentLoadFailure on any problem.

Sources:
- FileContentSource: JSON document on local disk
- HttpContentSource: JSON document served over HTTP (httpx)
"""

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import structlog

from clarity.core.config import Settings
from clarity.core.exceptions import ContentLoadFailure

log = structlog.get_logger(__name__)


class ContentSource(ABC):
    """Abstract base for content index sources."""

    @abstractmethod
    async def fetch(self) -> Dict[str, Any]:
        """
        Fetch the raw content index document.

        Returns:
            Decoded JSON document

        Raises:
            ContentLoadFailure: If the document cannot be fetched or decoded
        """
        pass

    def describe(self) -> str:
        return type(self).__name__


class FileContentSource(ContentSource):
    """Reads the content index from a JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def fetch(self) -> Dict[str, Any]:
        if not self.path.exists():
            raise ContentLoadFailure(f"Content index file not found: {self.path}")

        try:
            raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError) as e:
            raise ContentLoadFailure(
                f"Failed to read content index {self.path}: {e}"
            ) from e

        if not isinstance(data, dict):
            raise ContentLoadFailure("Content index root must be a JSON object")
        return data

    def describe(self) -> str:
        return f"file:{self.path}"


class HttpContentSource(ContentSource):
    """Fetches the content index over HTTP.

    Uses httpx for async HTTP calls. The timeout bounds the whole request.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.headers = headers or {}

    async def fetch(self) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.url, headers=self.headers)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise ContentLoadFailure(
                f"Content index fetch timed out after {self.timeout}s"
            ) from e
        except httpx.HTTPStatusError as e:
            raise ContentLoadFailure(
                f"Failed to load content index: {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ContentLoadFailure(f"Failed to load content index: {e}") from e

        if not isinstance(data, dict):
            raise ContentLoadFailure("Content index root must be a JSON object")
        return data

    def describe(self) -> str:
        return f"http:{self.url}"


def get_content_source(settings: Settings) -> ContentSource:
    """Build the configured content source (HTTP if a URL is set, else file)."""
    if settings.content_index_url:
        log.info("content_source_selected", source="http", url=settings.content_index_url)
        return HttpContentSource(
            settings.content_index_url, timeout=settings.content_fetch_timeout
        )

    log.info(
        "content_source_selected", source="file", path=str(settings.content_index_path)
    )
    return FileContentSource(settings.content_index_path)

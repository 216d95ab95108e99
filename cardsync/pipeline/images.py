"""
Card Sync — Card Image Downloader

Downloads card images resolved by the scraper and stores them under
settings.IMAGE_DIR, named after the last segment of the image URL.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx
import structlog

from cardsync.config import settings

logger = structlog.get_logger(__name__)


class ImageDownloader:
    """
    Async image downloader.

    Usage:
        async with ImageDownloader() as downloader:
            path = await downloader.download(url)
    """

    def __init__(
        self,
        image_dir: str | Path | None = None,
        timeout: float | None = None,
    ) -> None:
        self.image_dir = Path(image_dir or settings.IMAGE_DIR)
        self._timeout = timeout or settings.IMAGE_DOWNLOAD_TIMEOUT_SECONDS
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ImageDownloader:
        self.image_dir.mkdir(parents=True, exist_ok=True)
        self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()

    async def download(self, url: str) -> Path:
        """
        Fetch one image and write it to disk.

        Raises:
            httpx.HTTPError: request failed or returned an error status.
            ValueError: the URL has no file name.
        """
        assert self._client is not None, "Downloader not initialized. Use 'async with'."

        response = await self._client.get(url)
        response.raise_for_status()

        filename = urlparse(str(response.url)).path.rsplit("/", 1)[-1]
        if not filename:
            raise ValueError(f"no file name in image url {url}")

        path = self.image_dir / filename
        path.write_bytes(response.content)
        logger.debug("image_saved", url=url, path=str(path), bytes=len(response.content), source="images")
        return path

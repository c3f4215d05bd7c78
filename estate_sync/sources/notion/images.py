"""
Local mirroring of remote images.

Notion-hosted file URLs expire after an hour, so every image a listing
references is copied into the site's static image directory and the record
points at the local copy instead. Downloads are idempotent (an existing
file is reused unless force=True), bounded by a semaphore, and a failure
for one image degrades to the placeholder without affecting its siblings.

Filename scheme:
    {slug}-{kind}-{index}{ext}            ordinary batches (index is 1-based)
    {slug}-{kind}-{sub_id}-{index}{ext}   images owned by one child entity
"""
import asyncio
import logging
import os
import posixpath
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse

import httpx

from estate_sync.core.api_errors import DownloadError
from estate_sync.core.config import Settings

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "/images/img-placeholder.webp"
DEFAULT_EXTENSION = ".webp"

IMAGE_KINDS = ("hero", "gallery", "developer", "amenity", "nearby", "tour", "panorama")


def image_extension(url: str) -> str:
    """Extension of the URL's path component, or .webp when it has none."""
    try:
        path = urlparse(url).path
    except ValueError:
        return DEFAULT_EXTENSION
    ext = posixpath.splitext(path)[1].lower()
    return ext or DEFAULT_EXTENSION


def image_filename(
    url: str,
    slug: str,
    kind: str,
    index: int,
    sub_id: Optional[str] = None
) -> str:
    ext = image_extension(url)
    if sub_id:
        return f"{slug}-{kind}-{sub_id}-{index}{ext}"
    return f"{slug}-{kind}-{index}{ext}"


class ImageMirror:
    """
    Downloads remote images into images_dir and hands back local references.

    One instance per build. Concurrent requests for the same destination
    file share a single download.
    """

    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        images_dir: str,
        url_prefix: str = "/images/notion",
        placeholder: str = PLACEHOLDER_IMAGE,
        max_concurrent_downloads: int = 8,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            images_dir: Directory files are written to (created on demand)
            url_prefix: Prefix of returned local references
            placeholder: Reference returned for images that fail
            max_concurrent_downloads: Download semaphore size
            timeout: Per-download timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.images_dir = Path(images_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self.placeholder = placeholder
        self.timeout = timeout
        self._transport = transport
        self._semaphore = asyncio.Semaphore(max_concurrent_downloads)
        self._inflight: Dict[str, "asyncio.Task[str]"] = {}
        self._client: Optional[httpx.AsyncClient] = None
        self.downloads = 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "ImageMirror":
        return cls(
            images_dir=settings.images_dir,
            url_prefix=settings.images_url_prefix,
            placeholder=settings.placeholder_image,
            max_concurrent_downloads=settings.max_concurrent_downloads,
            timeout=settings.download_timeout,
            transport=transport,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def local_ref(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    async def mirror_one(self, url: str, filename: str, force: bool = False) -> str:
        """
        Copy url to images_dir/filename and return its local reference.

        Raises:
            DownloadError: On non-2xx status, transport error or write error.
                Any partially written file is removed first. Also raised
                for a filename that is not a plain name inside images_dir.
        """
        if Path(filename).name != filename or filename.startswith("."):
            raise DownloadError(f"Refusing to write outside images dir: {filename!r}", url=url)
        destination = self.images_dir / filename
        if not force and destination.exists():
            logger.debug(f"Image already mirrored: {filename}")
            return self.local_ref(filename)

        task = self._inflight.get(filename)
        if task is None:
            task = asyncio.ensure_future(self._download(url, destination))
            self._inflight[filename] = task
            task.add_done_callback(lambda _t: self._inflight.pop(filename, None))
        await asyncio.shield(task)
        return self.local_ref(filename)

    async def _download(self, url: str, destination: Path) -> str:
        async with self._semaphore:
            logger.info(f"Downloading image: {destination.name}")
            client = await self._get_client()
            destination.parent.mkdir(parents=True, exist_ok=True)
            try:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise DownloadError(
                            f"Failed to download image: HTTP {response.status_code}",
                            url=url,
                            destination=str(destination),
                        )
                    with open(destination, "wb") as f:
                        async for chunk in response.aiter_bytes(self.CHUNK_SIZE):
                            f.write(chunk)
            except DownloadError:
                _remove_partial(destination)
                raise
            except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
                _remove_partial(destination)
                raise DownloadError(
                    "Failed to download image",
                    url=url,
                    destination=str(destination),
                    cause=e,
                ) from e

        self.downloads += 1
        logger.info(f"Downloaded: {destination.name}")
        return str(destination)

    async def mirror_many(
        self,
        urls: List[str],
        slug: str,
        kind: str,
        sub_id: Optional[str] = None,
        force: bool = False,
    ) -> List[str]:
        """
        Mirror every URL, returning one reference per input in input order.

        A URL that fails to mirror yields the placeholder in its slot.
        """

        async def mirror_at(index: int, url: str) -> str:
            try:
                filename = image_filename(url, slug, kind, index, sub_id)
                return await self.mirror_one(url, filename, force=force)
            except DownloadError as e:
                logger.error(f"Image {index} for {slug}/{kind}: {e}")
            except ValueError as e:
                logger.error(f"Image {index} for {slug}/{kind}: invalid URL {url!r}: {e}")
            return self.placeholder

        return list(await asyncio.gather(
            *[mirror_at(i, url) for i, url in enumerate(urls, start=1)]
        ))

    async def mirror_first(
        self,
        urls: List[str],
        slug: str,
        kind: str,
        sub_id: Optional[str] = None,
    ) -> str:
        """Reference for the first URL only, or the placeholder if there is none."""
        if not urls:
            return self.placeholder
        refs = await self.mirror_many(urls[:1], slug, kind, sub_id=sub_id)
        return refs[0]


def _remove_partial(path: Path) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove partial download {path}: {e}")

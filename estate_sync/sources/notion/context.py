"""
Build context: everything one build shares.

A build opens one context, passes it to every fetch call, and closes it
when done. The context owns the content store client, the image mirror and
the build cache, so two builds in the same process never share cached
results unless they share the context.

Usage:
    async with BuildContext.from_settings(get_settings()) as ctx:
        listings = await fetch_all(ctx)
"""
import logging
from typing import Optional

import httpx

from estate_sync.core.cache import BuildCache
from estate_sync.core.config import Settings, get_settings
from estate_sync.sources.notion.client import ContentStore, NotionClient
from estate_sync.sources.notion.images import ImageMirror

logger = logging.getLogger(__name__)


class BuildContext:
    """Content store, image mirror and cache for one build."""

    def __init__(
        self,
        store: ContentStore,
        images: ImageMirror,
        settings: Optional[Settings] = None,
        cache: Optional[BuildCache] = None,
    ):
        self.store = store
        self.images = images
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else BuildCache()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "BuildContext":
        """
        Wire a context against the real Notion API.

        Raises:
            ConfigurationError: If NOTION_TOKEN is not set
        """
        return cls(
            store=NotionClient.from_settings(settings, transport=transport),
            images=ImageMirror.from_settings(settings, transport=transport),
            settings=settings,
        )

    @property
    def placeholder(self) -> str:
        return self.images.placeholder

    def clear_cache(self) -> int:
        """Drop every cached result so the next fetch goes back to the store."""
        return self.cache.clear()

    async def close(self) -> None:
        stats = self.cache.get_stats()
        logger.info(
            f"Build finished: cache size={stats['size']} hits={stats['hits']} "
            f"misses={stats['misses']} downloads={self.images.downloads}"
        )
        await self.store.close()
        await self.images.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

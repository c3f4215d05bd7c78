"""
Public fetch API for listings.

Every function takes the BuildContext of the current build and memoizes
its result in the context's cache, so a build that asks for the same data
twice queries the store once.

Failure contract:
- fetch_all never raises. A page that fails to transform is replaced by a
  fallback record stamped with the page id; a failed listings query gives
  a single fallback record.
- fetch_by_slug returns None when no listing has the slug, and a fallback
  record (is_fallback=True) stamped with the slug when the fetch failed.
"""
import asyncio
import logging
from typing import List, Optional

from estate_sync.core.cache import make_cache_key
from estate_sync.core.schemas import ListingRecord
from estate_sync.sources.notion.children import (
    fetch_amenities,
    fetch_nearby_locations,
    fetch_scenes,
)
from estate_sync.sources.notion.context import BuildContext
from estate_sync.sources.notion.extractors import RemoteRow
from estate_sync.sources.notion.transform import (
    fallback_record,
    resolve_slug,
    transform_property,
)

logger = logging.getLogger(__name__)

__all__ = [
    "fetch_all",
    "fetch_by_slug",
    "fetch_tours_only",
    "fetch_amenities",
    "fetch_nearby_locations",
    "fetch_scenes",
]

NEWEST_FIRST = [{"timestamp": "created_time", "direction": "descending"}]


async def _transform_or_fallback(ctx: BuildContext, row: RemoteRow) -> ListingRecord:
    try:
        return await transform_property(ctx, row)
    except Exception as e:
        logger.exception(f"[notion] transform failed for property {row.id}: {e}")
        return fallback_record(
            record_id=row.id, slug=resolve_slug(row), placeholder=ctx.placeholder
        )


async def fetch_all(ctx: BuildContext) -> List[ListingRecord]:
    """All listings, newest first, transformed concurrently."""

    async def load() -> List[ListingRecord]:
        rows = await ctx.store.query_collection("properties", sorts=NEWEST_FIRST)
        logger.info(f"[notion] fetched {len(rows)} properties")
        return list(await asyncio.gather(
            *[_transform_or_fallback(ctx, row) for row in rows]
        ))

    try:
        return await ctx.cache.get_or_compute("all_properties", load)
    except Exception as e:
        logger.error(f"[notion] fetching all properties failed: {e}")
        return [fallback_record(placeholder=ctx.placeholder)]


async def fetch_by_slug(ctx: BuildContext, slug: str) -> Optional[ListingRecord]:
    """
    The listing whose Slug equals slug.

    Returns:
        The record; None if no listing has this slug; a fallback record
        with is_fallback=True and this slug if the fetch failed
    """

    async def load() -> Optional[ListingRecord]:
        rows = await ctx.store.query_collection(
            "properties",
            filter={"property": "Slug", "rich_text": {"equals": slug}},
        )
        if not rows:
            logger.info(f"[notion] no property with slug {slug!r}")
            return None
        return await transform_property(ctx, rows[0])

    try:
        return await ctx.cache.get_or_compute(make_cache_key("property", slug), load)
    except Exception as e:
        logger.error(f"[notion] fetching property {slug!r} failed: {e}")
        return fallback_record(slug=slug, placeholder=ctx.placeholder)


async def fetch_tours_only(ctx: BuildContext) -> List[ListingRecord]:
    """Listings that have at least one virtual tour scene."""
    return [record for record in await fetch_all(ctx) if record.virtual_tour.enabled]

"""
Fetchers for the child collections of a listing.

Amenities, nearby locations and virtual tour scenes live in their own
databases, related to the listing through a "Property" relation. Each
fetcher queries its collection for one parent, extracts the typed fields,
mirrors the row's images under the parent's slug and builds child records.

Titles are read from whichever property is the row's title-type field,
since the column name differs between databases. A failed query yields an
empty list for that parent; it is logged and never raised.
"""
import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Set

from estate_sync.core.api_errors import ParseError, RemoteQueryError
from estate_sync.core.cache import make_cache_key
from estate_sync.core.schemas import Amenity, HotSpot, NearbyLocation, Scene
from estate_sync.sources.notion.context import BuildContext
from estate_sync.sources.notion.extractors import (
    RemoteRow,
    extract_files,
    extract_plain_text,
    extract_text_value,
    extract_title,
    first_present,
    slugify,
)

logger = logging.getLogger(__name__)

DEFAULT_AMENITY_TITLE = "Amenity"
DEFAULT_NEARBY_TITLE = "Nearby Location"
DEFAULT_SCENE_TITLE = "Scene"

_SAFE_ID_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]*")


def _parent_filter(parent_id: str) -> Dict[str, Any]:
    return {"property": "Property", "relation": {"contains": parent_id}}


async def _query_children(
    ctx: BuildContext,
    collection: str,
    parent_id: str,
    sorts: Optional[List[Dict[str, Any]]] = None,
) -> List[RemoteRow]:
    return await ctx.store.query_collection(
        collection, filter=_parent_filter(parent_id), sorts=sorts
    )


def unique_ids(candidates: List[str]) -> List[str]:
    """
    Make sibling ids unique, keeping the first occurrence as is.

    Repeats get -2, -3, ... so that two siblings never share an image file.

    >>> unique_ids(["amenity", "amenity", "gym"])
    ['amenity', 'amenity-2', 'gym']
    """
    used: Set[str] = set(candidates)
    seen: Set[str] = set()
    result = []
    for candidate in candidates:
        if candidate in seen:
            n = 2
            while f"{candidate}-{n}" in used:
                n += 1
            candidate = f"{candidate}-{n}"
            used.add(candidate)
        seen.add(candidate)
        result.append(candidate)
    return result


def _child_ids(titles: List[str]) -> List[str]:
    return unique_ids([slugify(title) or "item" for title in titles])


async def fetch_amenities(ctx: BuildContext, parent_id: str, slug: str) -> List[Amenity]:
    """Amenities of one listing, images mirrored as {slug}-amenity-{id}-1."""

    async def build(row: RemoteRow, title: str, child_id: str) -> Amenity:
        image_url = await ctx.images.mirror_first(
            extract_files(first_present(row, "Image", "Images")),
            slug,
            "amenity",
            sub_id=child_id,
        )
        return Amenity(
            title=title,
            description=extract_plain_text(row.get("Description")),
            category=extract_text_value(first_present(row, "Category", "Amenity", "Type")),
            image_url=image_url,
        )

    async def load() -> List[Amenity]:
        rows = await _query_children(ctx, "amenities", parent_id)
        titles = [extract_title(row) or DEFAULT_AMENITY_TITLE for row in rows]
        return list(await asyncio.gather(
            *[build(row, t, child_id) for row, t, child_id in zip(rows, titles, _child_ids(titles))]
        ))

    try:
        return await ctx.cache.get_or_compute(make_cache_key("amenities", parent_id), load)
    except RemoteQueryError as e:
        logger.error(f"[notion] amenities for {parent_id}: {e}")
        return []


async def fetch_nearby_locations(
    ctx: BuildContext,
    parent_id: str,
    slug: str
) -> List[NearbyLocation]:
    """Points of interest near one listing."""

    async def build(row: RemoteRow, title: str, child_id: str) -> NearbyLocation:
        image_url = await ctx.images.mirror_first(
            extract_files(first_present(row, "Image", "Images")),
            slug,
            "nearby",
            sub_id=child_id,
        )
        distance = extract_text_value(row.get("Distance"))
        return NearbyLocation(
            title=title,
            description=extract_plain_text(row.get("Description")),
            category=extract_text_value(first_present(row, "Category", "Type")),
            distance=distance or None,
            image_url=image_url,
        )

    async def load() -> List[NearbyLocation]:
        rows = await _query_children(ctx, "nearby_locations", parent_id)
        titles = [extract_title(row) or DEFAULT_NEARBY_TITLE for row in rows]
        return list(await asyncio.gather(
            *[build(row, t, child_id) for row, t, child_id in zip(rows, titles, _child_ids(titles))]
        ))

    try:
        return await ctx.cache.get_or_compute(make_cache_key("nearby", parent_id), load)
    except RemoteQueryError as e:
        logger.error(f"[notion] nearby locations for {parent_id}: {e}")
        return []


def parse_hotspots(raw: str, field: str = "Hotspots") -> List[HotSpot]:
    """
    Parse the JSON array stored in a scene's hotspot text field.

    Raises:
        ParseError: If the text is not a JSON array of hotspot objects
    """
    if not raw.strip():
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON: {e}", field=field, raw=raw) from e
    if not isinstance(data, list):
        raise ParseError("expected a JSON array", field=field, raw=raw)
    try:
        return [HotSpot.model_validate(item) for item in data]
    except ValueError as e:
        raise ParseError(f"invalid hotspot: {e}", field=field, raw=raw) from e


def _scene_base_id(row: RemoteRow, title: str, index: int) -> str:
    """
    Explicit SceneId, else the slugified title, else scene-{index}.

    Hotspots target explicit ids, so a filename-safe one is kept verbatim;
    anything else (path separators, dots, spaces) is slugified.
    """
    explicit = extract_plain_text(first_present(row, "SceneId", "Scene ID")).strip()
    if _SAFE_ID_RE.fullmatch(explicit):
        return explicit
    return (
        slugify(explicit)
        or slugify(title)
        or f"scene-{index}"
    )


async def _build_scene(
    ctx: BuildContext,
    row: RemoteRow,
    title: str,
    scene_id: str,
    slug: str
) -> Optional[Scene]:
    try:
        hot_spots = parse_hotspots(
            extract_plain_text(first_present(row, "Hotspots", "HotSpots"))
        )
    except ParseError as e:
        logger.error(f"[notion] hotspots for scene {scene_id} ({row.id}): {e}")
        hot_spots = []

    panorama_url = await ctx.images.mirror_first(
        extract_files(first_present(row, "PanoramaImage", "Panorama")),
        slug,
        "tour",
        sub_id=scene_id,
    )
    if panorama_url == ctx.placeholder:
        logger.warning(f"[notion] scene {scene_id} ({row.id}) has no usable panorama, skipped")
        return None

    thumbnail_urls = extract_files(first_present(row, "ThumbnailImage", "Thumbnail"))
    if thumbnail_urls:
        thumbnail_url = await ctx.images.mirror_first(
            thumbnail_urls, slug, "tour", sub_id=f"{scene_id}-thumb"
        )
        if thumbnail_url == ctx.placeholder:
            thumbnail_url = panorama_url
    else:
        thumbnail_url = panorama_url

    return Scene(
        id=scene_id,
        title=title,
        panorama_url=panorama_url,
        thumbnail_url=thumbnail_url,
        description=extract_plain_text(row.get("Description")),
        hot_spots=hot_spots,
    )


async def fetch_scenes(ctx: BuildContext, parent_id: str, slug: str) -> List[Scene]:
    """
    Virtual tour scenes of one listing, in their Order.

    Scenes whose panorama could not be resolved are dropped.
    """

    async def load() -> List[Scene]:
        rows = await _query_children(
            ctx,
            "virtual_tour_scenes",
            parent_id,
            sorts=[{"property": "Order", "direction": "ascending"}],
        )
        titles = [extract_title(row) or DEFAULT_SCENE_TITLE for row in rows]
        scene_ids = unique_ids([
            _scene_base_id(row, t, i) for i, (row, t) in enumerate(zip(rows, titles), start=1)
        ])
        built = await asyncio.gather(*[
            _build_scene(ctx, row, t, scene_id, slug)
            for row, t, scene_id in zip(rows, titles, scene_ids)
        ])
        return [scene for scene in built if scene is not None]

    try:
        return await ctx.cache.get_or_compute(make_cache_key("scenes", parent_id), load)
    except RemoteQueryError as e:
        logger.error(f"[notion] virtual tour scenes for {parent_id}: {e}")
        return []

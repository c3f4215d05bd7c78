"""
Tests for BuildContext lifecycle (estate_sync/sources/notion/context.py).
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from estate_sync.core.api_errors import ConfigurationError, RemoteQueryError
from estate_sync.core.config import Settings
from estate_sync.sources.notion.client import ContentStore, NotionClient
from estate_sync.sources.notion.context import BuildContext
from estate_sync.sources.notion.extractors import RemoteRow
from estate_sync.sources.notion.fetch import fetch_all, fetch_by_slug

from notion_factories import listing_page


@pytest.mark.unit
def test_from_settings_requires_token(clean_env):
    settings = Settings(_env_file=None)

    with pytest.raises(ConfigurationError):
        BuildContext.from_settings(settings)


@pytest.mark.unit
def test_from_settings_wires_notion_client(settings):
    ctx = BuildContext.from_settings(settings)

    assert isinstance(ctx.store, NotionClient)
    assert ctx.store.database_ids == settings.database_ids
    assert ctx.images.images_dir.as_posix().endswith("images")
    assert ctx.placeholder == "/images/img-placeholder.webp"


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_exit_closes_store_and_mirror(self, settings):
        store = AsyncMock(spec=ContentStore)
        images = MagicMock()
        images.close = AsyncMock()
        images.downloads = 0

        async with BuildContext(store=store, images=images, settings=settings):
            pass

        store.close.assert_awaited_once()
        images.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_clear_cache_returns_dropped_count(self, ctx, store):
        store.add("properties", listing_page("p1", slug="uno"))
        await fetch_all(ctx)

        # all_properties plus amenities, nearby and scenes for p1
        assert ctx.clear_cache() == 4
        assert len(ctx.cache) == 0


class TestStoreFailures:

    @pytest.mark.asyncio
    async def test_fetch_all_with_failing_store(self, mirror, settings):
        store = AsyncMock(spec=ContentStore)
        store.query_collection.side_effect = RemoteQueryError("down", collection="properties")
        ctx = BuildContext(store=store, images=mirror, settings=settings)

        records = await fetch_all(ctx)

        assert len(records) == 1
        assert records[0].is_fallback is True
        store.query_collection.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fetch_by_slug_transform_crash_is_stamped(self, mirror, settings):
        store = AsyncMock(spec=ContentStore)
        store.query_collection.return_value = [RemoteRow.from_page(listing_page("p1", slug="uno"))]
        ctx = BuildContext(store=store, images=mirror, settings=settings)

        with patch(
            "estate_sync.sources.notion.fetch.transform_property",
            new=AsyncMock(side_effect=KeyError("Name")),
        ):
            record = await fetch_by_slug(ctx, "uno")

        assert record.is_fallback is True
        assert record.slug == "uno"

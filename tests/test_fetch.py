"""
Tests for the public fetch API (estate_sync/sources/notion/fetch.py).
"""
import pytest

from estate_sync.sources.notion import fetch as fetch_module
from estate_sync.sources.notion.context import BuildContext
from estate_sync.sources.notion.fetch import fetch_all, fetch_by_slug, fetch_tours_only

from notion_factories import child_page, files, listing_page, title

CDN = "https://cdn.example.com"


def add_listings(store):
    store.add(
        "properties",
        listing_page("p1", slug="con-tour"),
        listing_page("p2", slug="sin-tour"),
    )
    store.add("virtual_tour_scenes", child_page(
        "s1", "p1", Title=title("Sala"), PanoramaImage=files(f"{CDN}/sala.jpg")
    ))


class TestFetchAll:

    @pytest.mark.asyncio
    async def test_returns_records_in_query_order(self, ctx, store):
        add_listings(store)

        records = await fetch_all(ctx)

        assert [r.slug for r in records] == ["con-tour", "sin-tour"]
        assert store.calls[0]["sorts"] == [{"timestamp": "created_time", "direction": "descending"}]

    @pytest.mark.asyncio
    async def test_second_call_hits_cache(self, ctx, store):
        add_listings(store)

        first = await fetch_all(ctx)
        second = await fetch_all(ctx)

        assert first == second
        assert store.queries["properties"] == 1
        assert store.queries["amenities"] == 2

    @pytest.mark.asyncio
    async def test_clear_cache_forces_refetch(self, ctx, store):
        add_listings(store)

        await fetch_all(ctx)
        ctx.clear_cache()
        await fetch_all(ctx)

        assert store.queries["properties"] == 2

    @pytest.mark.asyncio
    async def test_broken_record_is_replaced_not_fatal(self, ctx, store, monkeypatch):
        add_listings(store)
        original = fetch_module.transform_property

        async def flaky(ctx_, row):
            if row.id == "p2":
                raise KeyError("schema changed")
            return await original(ctx_, row)

        monkeypatch.setattr(fetch_module, "transform_property", flaky)

        records = await fetch_all(ctx)

        assert records[0].slug == "con-tour"
        assert records[0].is_fallback is False
        assert records[1].id == "p2"
        assert records[1].is_fallback is True

    @pytest.mark.asyncio
    async def test_broken_records_keep_distinct_slugs(self, ctx, store, monkeypatch):
        store.add(
            "properties",
            listing_page("p1", slug="torre-sur"),
            listing_page("p2"),
        )

        async def broken(ctx_, row):
            raise KeyError("schema changed")

        monkeypatch.setattr(fetch_module, "transform_property", broken)

        records = await fetch_all(ctx)

        assert [(r.id, r.slug) for r in records] == [("p1", "torre-sur"), ("p2", "property-p2")]
        assert all(r.is_fallback for r in records)

    @pytest.mark.asyncio
    async def test_fallbacks_use_configured_placeholder(self, store, mirror, settings):
        mirror.placeholder = "/img/none.png"
        ctx = BuildContext(store=store, images=mirror, settings=settings)
        store.failing.add("properties")

        records = await fetch_all(ctx)

        assert records[0].media.images == ["/img/none.png"]

    @pytest.mark.asyncio
    async def test_query_failure_gives_single_fallback(self, ctx, store):
        store.failing.add("properties")

        records = await fetch_all(ctx)

        assert len(records) == 1
        assert records[0].is_fallback is True
        assert "all_properties" not in ctx.cache

    @pytest.mark.asyncio
    async def test_missing_amenity_title_does_not_abort_batch(self, ctx, store):
        add_listings(store)
        store.add("amenities", child_page("a1", "p2"))

        records = await fetch_all(ctx)

        assert records[1].amenities[0].title == "Amenity"
        assert not any(r.is_fallback for r in records)


class TestFetchBySlug:

    @pytest.mark.asyncio
    async def test_found(self, ctx, store):
        add_listings(store)

        record = await fetch_by_slug(ctx, "sin-tour")

        assert record.id == "p2"
        assert record.is_fallback is False
        assert store.calls[0]["filter"] == {"property": "Slug", "rich_text": {"equals": "sin-tour"}}

    @pytest.mark.asyncio
    async def test_not_found_is_none(self, ctx, store):
        assert await fetch_by_slug(ctx, "nonexistent") is None

    @pytest.mark.asyncio
    async def test_not_found_is_not_cached(self, ctx, store):
        await fetch_by_slug(ctx, "nonexistent")
        await fetch_by_slug(ctx, "nonexistent")

        assert store.queries["properties"] == 2

    @pytest.mark.asyncio
    async def test_error_gives_stamped_fallback(self, ctx, store):
        store.failing.add("properties")

        record = await fetch_by_slug(ctx, "con-tour")

        assert record is not None
        assert record.is_fallback is True
        assert record.slug == "con-tour"

    @pytest.mark.asyncio
    async def test_cached(self, ctx, store):
        add_listings(store)

        await fetch_by_slug(ctx, "con-tour")
        await fetch_by_slug(ctx, "con-tour")

        assert store.queries["properties"] == 1


class TestFetchToursOnly:

    @pytest.mark.asyncio
    async def test_only_enabled_tours(self, ctx, store):
        add_listings(store)

        tours = await fetch_tours_only(ctx)

        assert [r.slug for r in tours] == ["con-tour"]
        assert all(r.virtual_tour.enabled == (len(r.virtual_tour.scenes) > 0) for r in tours)

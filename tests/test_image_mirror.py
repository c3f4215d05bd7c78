"""
Unit tests for estate_sync/sources/notion/images.py

Downloads go through an httpx.MockTransport; files land in tmp_path.
"""
import asyncio

import httpx
import pytest

from estate_sync.core.api_errors import DownloadError
from estate_sync.sources.notion.images import (
    PLACEHOLDER_IMAGE,
    ImageMirror,
    image_extension,
    image_filename,
)

CDN = "https://cdn.example.com"


class TestFilenames:

    @pytest.mark.unit
    def test_extension_from_url_path(self):
        assert image_extension(f"{CDN}/photos/a.JPG?X-Amz-Signature=abc") == ".jpg"
        assert image_extension(f"{CDN}/photos/a.png") == ".png"

    @pytest.mark.unit
    def test_extension_defaults_to_webp(self):
        assert image_extension(f"{CDN}/photos/a") == ".webp"
        assert image_extension(f"{CDN}/") == ".webp"

    @pytest.mark.unit
    def test_batch_filename(self):
        assert image_filename(f"{CDN}/x.jpg", "torre-norte", "gallery", 3) == "torre-norte-gallery-3.jpg"

    @pytest.mark.unit
    def test_sub_entity_filename(self):
        name = image_filename(f"{CDN}/x", "torre-norte", "tour", 1, sub_id="rooftop-pool")
        assert name == "torre-norte-tour-rooftop-pool-1.webp"


class TestMirrorOne:

    @pytest.mark.asyncio
    async def test_downloads_to_images_dir(self, mirror, settings, image_server):
        ref = await mirror.mirror_one(f"{CDN}/a.jpg", "slug-hero-1.jpg")

        assert ref == "/images/notion/slug-hero-1.jpg"
        written = (mirror.images_dir / "slug-hero-1.jpg").read_bytes()
        assert written == f"IMG:{CDN}/a.jpg".encode()
        assert image_server.total_hits == 1
        await mirror.close()

    @pytest.mark.asyncio
    async def test_second_call_is_not_downloaded_again(self, mirror, image_server):
        first = await mirror.mirror_one(f"{CDN}/a.jpg", "slug-hero-1.jpg")
        second = await mirror.mirror_one(f"{CDN}/a.jpg", "slug-hero-1.jpg")

        assert first == second
        assert image_server.hits[f"{CDN}/a.jpg"] == 1
        assert mirror.downloads == 1
        await mirror.close()

    @pytest.mark.asyncio
    async def test_force_downloads_again(self, mirror, image_server):
        await mirror.mirror_one(f"{CDN}/a.jpg", "slug-hero-1.jpg")
        await mirror.mirror_one(f"{CDN}/a.jpg", "slug-hero-1.jpg", force=True)

        assert image_server.hits[f"{CDN}/a.jpg"] == 2
        await mirror.close()

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_download(self, mirror, image_server):
        refs = await asyncio.gather(
            *[mirror.mirror_one(f"{CDN}/a.jpg", "slug-hero-1.jpg") for _ in range(5)]
        )

        assert set(refs) == {"/images/notion/slug-hero-1.jpg"}
        assert image_server.hits[f"{CDN}/a.jpg"] == 1
        await mirror.close()

    @pytest.mark.asyncio
    async def test_http_error_raises_and_leaves_no_file(self, mirror, image_server):
        image_server.failing.add(f"{CDN}/missing.jpg")

        with pytest.raises(DownloadError) as exc_info:
            await mirror.mirror_one(f"{CDN}/missing.jpg", "slug-hero-1.jpg")

        assert "404" in str(exc_info.value)
        assert exc_info.value.url == f"{CDN}/missing.jpg"
        assert not (mirror.images_dir / "slug-hero-1.jpg").exists()
        await mirror.close()

    @pytest.mark.asyncio
    async def test_transport_error_carries_cause(self, mirror, image_server):
        image_server.broken.add(f"{CDN}/down.jpg")

        with pytest.raises(DownloadError) as exc_info:
            await mirror.mirror_one(f"{CDN}/down.jpg", "slug-hero-1.jpg")

        assert exc_info.value.cause is not None
        assert not (mirror.images_dir / "slug-hero-1.jpg").exists()
        await mirror.close()


class TestMirrorMany:

    @pytest.mark.asyncio
    async def test_preserves_order_and_length(self, mirror, image_server):
        urls = [f"{CDN}/1.jpg", f"{CDN}/2.png", f"{CDN}/3"]
        image_server.failing.add(f"{CDN}/2.png")

        refs = await mirror.mirror_many(urls, "casa", "gallery")

        assert refs == [
            "/images/notion/casa-gallery-1.jpg",
            PLACEHOLDER_IMAGE,
            "/images/notion/casa-gallery-3.webp",
        ]
        await mirror.close()

    @pytest.mark.asyncio
    async def test_transport_failure_becomes_placeholder(self, mirror, image_server):
        image_server.broken.add(f"{CDN}/down.jpg")
        refs = await mirror.mirror_many([f"{CDN}/down.jpg", f"{CDN}/ok.jpg"], "casa", "gallery")

        assert refs[0] == PLACEHOLDER_IMAGE
        assert refs[1] == "/images/notion/casa-gallery-2.jpg"
        await mirror.close()

    @pytest.mark.asyncio
    async def test_empty_input(self, mirror):
        assert await mirror.mirror_many([], "casa", "gallery") == []
        assert await mirror.mirror_first([], "casa", "developer", sub_id="logo") == PLACEHOLDER_IMAGE
        await mirror.close()

    @pytest.mark.asyncio
    async def test_sub_entity_names(self, mirror):
        ref = await mirror.mirror_first([f"{CDN}/p.jpg"], "casa", "tour", sub_id="lobby")

        assert ref == "/images/notion/casa-tour-lobby-1.jpg"
        await mirror.close()


class TestDownloadLimit:

    @pytest.mark.asyncio
    async def test_concurrent_downloads_stay_within_cap(self, tmp_path):
        active = 0
        peak = 0

        async def slow_handler(request):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.02)
            active -= 1
            return httpx.Response(200, content=b"IMG")

        mirror = ImageMirror(
            images_dir=str(tmp_path / "images"),
            max_concurrent_downloads=2,
            transport=httpx.MockTransport(slow_handler),
        )
        urls = [f"{CDN}/{i}.jpg" for i in range(8)]

        refs = await mirror.mirror_many(urls, "casa", "gallery")
        await mirror.close()

        assert PLACEHOLDER_IMAGE not in refs
        assert mirror.downloads == 8
        assert peak == 2


class TestUnsafeFilenames:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("filename", ["../../escape-gallery-1.jpg", "sub/dir.jpg", ".hidden.jpg"])
    async def test_rejects_names_outside_images_dir(self, mirror, image_server, filename):
        with pytest.raises(DownloadError):
            await mirror.mirror_one(f"{CDN}/a.jpg", filename)

        assert image_server.total_hits == 0
        await mirror.close()

"""
Pytest configuration and shared fixtures.
"""
import httpx
import pytest

from estate_sync.core.config import Settings, reset_settings
from estate_sync.sources.notion.context import BuildContext
from estate_sync.sources.notion.images import ImageMirror

from notion_factories import FakeStore, ImageServer


@pytest.fixture(scope="function")
def clean_env(monkeypatch):
    """
    Clean environment for testing.

    Removes all app-related env vars to ensure clean state.
    """
    env_vars = [
        "NOTION_TOKEN",
        "NOTION_PROPERTIES_DB_ID",
        "NOTION_AMENITIES_DB_ID",
        "NOTION_NEARBY_LOCATIONS_DB_ID",
        "NOTION_VIRTUAL_TOUR_SCENES_DB_ID",
        "IMAGES_DIR",
        "MAX_CONCURRENCY",
        "MAX_CONCURRENT_DOWNLOADS",
        "LOG_LEVEL",
        "EXPORT_DIR",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

    # Reset settings singleton
    reset_settings()

    yield

    # Reset again after test
    reset_settings()


@pytest.fixture
def settings(tmp_path):
    """Settings pointing image and export output into tmp_path."""
    return Settings(
        _env_file=None,
        notion_token="secret_test",
        images_dir=str(tmp_path / "images"),
        export_dir=str(tmp_path / "exports"),
    )


@pytest.fixture
def image_server():
    """Fake image host; every URL serves bytes unless marked failing."""
    return ImageServer()


@pytest.fixture
def mirror(settings, image_server):
    return ImageMirror.from_settings(settings, transport=image_server.transport())


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def ctx(store, mirror, settings):
    return BuildContext(store=store, images=mirror, settings=settings)

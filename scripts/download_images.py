#!/usr/bin/env python3
"""
Pre-build step: mirror every listing image before the site build runs.

Fetching all listings downloads their hero, gallery, developer, amenity,
nearby and tour images as a side effect; files already on disk are kept.
"""
import asyncio
import logging
import sys

from estate_sync.core.config import get_settings
from estate_sync.sources.notion.context import BuildContext
from estate_sync.sources.notion.fetch import fetch_all

logger = logging.getLogger("download_images")


async def run() -> int:
    settings = get_settings()
    async with BuildContext.from_settings(settings) as ctx:
        records = await fetch_all(ctx)
        downloaded = ctx.images.downloads

    failed = [record.id for record in records if record.is_fallback]
    logger.info(f"Processed {len(records)} properties, downloaded {downloaded} new images")
    if failed:
        logger.error(f"{len(failed)} properties fell back to placeholder data: {failed}")
        return 1
    return 0


def main() -> int:
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    try:
        return asyncio.run(run())
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

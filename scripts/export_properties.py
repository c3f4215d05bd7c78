#!/usr/bin/env python3
"""
Export every Notion listing to JSON files and report missing fields.

Runs the build in-process; no server needed. Requires NOTION_TOKEN and the
database ids in the environment or .env.

Usage:
    python scripts/export_properties.py [--export-dir notion-exports]
"""
import argparse
import asyncio
import logging
import sys

from estate_sync.core.config import get_settings
from estate_sync.sources.notion.context import BuildContext
from estate_sync.sources.notion.export import export_properties, missing_fields
from estate_sync.sources.notion.fetch import fetch_all


async def run(export_dir: str) -> int:
    settings = get_settings()
    async with BuildContext.from_settings(settings) as ctx:
        records = await fetch_all(ctx)
    summary = export_properties(records, export_dir)

    print(f"✅ Exported {summary['totalProperties']} properties to {export_dir}/")
    print(f"Export date: {summary['exportDate']}")
    print()
    print("📋 Properties exported:")
    for index, prop in enumerate(summary["properties"], start=1):
        print(f"{index}. {prop['name'] or 'Unnamed'} ({prop['slug']})")
        issues = missing_fields(prop["hasRequiredFields"])
        if prop["isFallback"]:
            issues.insert(0, "fallback record (fetch failed)")
        if issues:
            print(f"   ⚠️  Issues: {', '.join(issues)}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Export Notion listings as JSON")
    parser.add_argument("--export-dir", default=None, help="Output directory")
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    try:
        return asyncio.run(run(args.export_dir or settings.export_dir))
    except Exception as e:
        print(f"❌ Export failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

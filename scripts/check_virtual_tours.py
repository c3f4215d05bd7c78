#!/usr/bin/env python3
"""
List the exported listings that have a virtual tour.

Reads the files written by export_properties.py; run that first.
"""
import argparse
import sys

from estate_sync.core.config import get_settings
from estate_sync.sources.notion.export import load_exported, virtual_tour_report


def main() -> int:
    parser = argparse.ArgumentParser(description="Check virtual tours in exported data")
    parser.add_argument("--export-dir", default=None)
    args = parser.parse_args()
    export_dir = args.export_dir or get_settings().export_dir

    records = load_exported(export_dir)
    if not records:
        print(f"❌ No exported data found in {export_dir}/. Run scripts/export_properties.py first.")
        return 1

    print(f"📊 Found {len(records)} property files\n")
    tours = virtual_tour_report(records)
    print(f"🎬 Properties with virtual tours: {len(tours)}\n")

    for tour in tours:
        print(f"  • {tour['name']} ({tour['slug']})")
        print(f"    Scenes: {len(tour['scenes'])}")
        for index, scene in enumerate(tour["scenes"], start=1):
            print(f"      {index}. {scene['title']} ({scene['id']})")
            print(f"         Panorama: {scene['panorama']}")
            print(f"         Hotspots: {scene['hotspots']}")
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
JSON export of fetched listings.

Writes one <slug>.json per listing plus a summary.json flagging listings
that are missing the fields pages depend on.
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Sequence

from estate_sync.core.schemas import ListingRecord
from estate_sync.sources.notion.extractors import slugify

logger = logging.getLogger(__name__)

SUMMARY_FILENAME = "summary.json"


def required_fields_status(record: ListingRecord) -> Dict[str, bool]:
    return {
        "name": bool(record.name.strip()),
        "slug": bool(record.slug.strip()),
        "description": bool(record.description.strip()),
        "images": len(record.media.images) > 0,
        "pricing": record.pricing.min_price > 0,
    }


def missing_fields(status: Dict[str, bool]) -> List[str]:
    labels = {
        "name": "missing name",
        "slug": "missing slug",
        "description": "missing description",
        "images": "no images",
        "pricing": "invalid pricing",
    }
    return [label for key, label in labels.items() if not status.get(key, False)]


def build_summary(records: Sequence[ListingRecord]) -> Dict[str, Any]:
    return {
        "exportDate": datetime.now(timezone.utc).isoformat(),
        "totalProperties": len(records),
        "properties": [
            {
                "id": record.id,
                "slug": record.slug,
                "name": record.name,
                "status": record.status,
                "isFallback": record.is_fallback,
                "hasRequiredFields": required_fields_status(record),
            }
            for record in records
        ],
    }


def write_json(path: Path, obj: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False)


def export_properties(records: Sequence[ListingRecord], export_dir: str) -> Dict[str, Any]:
    """
    Write every record and the summary to export_dir.

    Returns:
        The summary dict that was written
    """
    out = Path(export_dir)
    out.mkdir(parents=True, exist_ok=True)

    for record in records:
        slug = slugify(record.slug) or f"property-{slugify(record.id)}"
        write_json(out / f"{slug}.json", record.model_dump(mode="json", by_alias=True))

    summary = build_summary(records)
    write_json(out / SUMMARY_FILENAME, summary)
    logger.info(f"Exported {len(records)} properties to {out}/")
    return summary


def load_exported(export_dir: str) -> List[ListingRecord]:
    """Read back the per-listing files written by export_properties."""
    out = Path(export_dir)
    if not out.is_dir():
        return []
    records = []
    for path in sorted(out.glob("*.json")):
        if path.name == SUMMARY_FILENAME:
            continue
        with open(path, encoding="utf-8") as f:
            records.append(ListingRecord.model_validate(json.load(f)))
    return records


def virtual_tour_report(records: Sequence[ListingRecord]) -> List[Dict[str, Any]]:
    """Listings with tours, and per scene its panorama and hotspot count."""
    return [
        {
            "name": record.name,
            "slug": record.slug,
            "scenes": [
                {
                    "id": scene.id,
                    "title": scene.title,
                    "panorama": scene.panorama_url,
                    "hotspots": len(scene.hot_spots),
                }
                for scene in record.virtual_tour.scenes
            ],
        }
        for record in records
        if record.virtual_tour.enabled
    ]

"""
Export API routes.

Runs a full build (fetch every listing, mirror images) and writes the
result to the export directory as JSON.
"""
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from estate_sync.core.config import get_settings
from estate_sync.sources.notion.context import BuildContext
from estate_sync.sources.notion.export import export_properties
from estate_sync.sources.notion.fetch import fetch_all

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Export"])


class ExportResponse(BaseModel):
    """Outcome of an export run."""
    success: bool
    message: Optional[str] = None
    summary: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


def get_context_factory() -> Callable[[], BuildContext]:
    """Factory for the per-request build context (overridden in tests)."""
    return lambda: BuildContext.from_settings(get_settings())


@router.get("/export-properties", response_model=ExportResponse, response_model_exclude_none=True)
async def export_all_properties(
    context_factory: Callable[[], BuildContext] = Depends(get_context_factory)
):
    """Fetch all listings and write <slug>.json files plus summary.json."""
    try:
        async with context_factory() as ctx:
            export_dir = ctx.settings.export_dir
            records = await fetch_all(ctx)
            summary = export_properties(records, export_dir)
    except Exception as e:
        logger.error(f"Export failed: {e}")
        return JSONResponse(
            status_code=500,
            content=ExportResponse(success=False, error=str(e)).model_dump(exclude_none=True),
        )

    return ExportResponse(
        success=True,
        message=f"Exported {len(records)} properties to {export_dir}/",
        summary=summary,
    )

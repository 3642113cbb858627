"""Error statistics endpoints."""
from fastapi import APIRouter, Query
from typing import Dict, Any, Optional

from storefront_assistant.analytics.error_tracker import error_tracker

router = APIRouter(prefix="/api/errors", tags=["errors"])


@router.get("/stats")
async def get_error_stats(window_seconds: int = Query(300, ge=1, le=3600)) -> Dict[str, Any]:
    """Error counts by type and endpoint."""
    return error_tracker.get_error_stats(window_seconds=window_seconds)


@router.get("/recent")
async def get_recent_errors(
    limit: int = Query(10, ge=1, le=100),
    error_type: Optional[str] = None,
) -> Dict[str, Any]:
    """Most recent errors, newest first."""
    recent = error_tracker.get_recent_errors(limit=limit, error_type=error_type)
    return {"count": len(recent), "errors": recent}

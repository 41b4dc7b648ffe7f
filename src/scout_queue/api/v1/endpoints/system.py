"""System and transparency endpoints for the Scout Queue API."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError

from scout_queue.core.settings import settings
from scout_queue.models import ProductVote
from scout_queue.services.bounty import BOUNTY_WEIGHT
from scout_queue.services.projector import QUEUE_FILTERS
from scout_queue.services.voting import VOTE_WEIGHTS

from ..dependencies import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["system", "transparency"])


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets and connection strings; suitable for client UIs that
    explain how votes are weighted.

    Returns:
        Dictionary containing app metadata, vote weights, funding and
        velocity policy, and read-side limits
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "voting": {
            "weights": dict(VOTE_WEIGHTS),
            "bounty_weight": BOUNTY_WEIGHT,
            "funding_threshold": settings.funding_threshold,
        },
        "velocity": {
            "window_hours": settings.velocity_window_hours,
            "max_scan_timestamps": settings.max_scan_timestamps,
            "trending_scans": settings.trending_scans_24h,
            "urgent_scans": settings.urgent_scans_24h,
        },
        "limits": {
            "leaderboard_max": settings.leaderboard_max_limit,
            "queue_default": settings.queue_default_limit,
            "investigations_max": settings.investigations_max,
            "queue_filters": list(QUEUE_FILTERS),
        },
    }


@router.get("/health")
def get_system_health(db: SessionDep) -> dict[str, object]:
    """Health check that also verifies database connectivity.

    Args:
        db: Database session

    Returns:
        Dictionary with overall status, component health, and version info
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        db_status = f"unhealthy: {e}"

    return {
        "status": "healthy" if db_status == "healthy" else "unhealthy",
        "timestamp": int(time.time()),
        "components": {
            "database": db_status,
        },
        "version": settings.app_version,
    }


@router.get("/activity-stats")
def get_activity_stats(db: SessionDep) -> dict[str, int]:
    """Ledger-wide activity counters (anonymized).

    Args:
        db: Database session

    Returns:
        Dictionary with counts of tracked products and recorded vote events
    """
    products = db.query(ProductVote).count() or 0
    events = db.query(func.coalesce(func.sum(ProductVote.total_votes), 0)).scalar() or 0
    funded = (
        db.query(ProductVote)
        .filter(ProductVote.threshold_reached_at.is_not(None))
        .count()
        or 0
    )
    return {
        "products": int(products),
        "votes": int(events),
        "funded": int(funded),
    }

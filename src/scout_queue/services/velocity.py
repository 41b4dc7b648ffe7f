"""Scan velocity tracking for trending detection.

Velocity is the number of scan-class events inside a trailing window
(24 hours by default), kept separate from the lifetime weighted score so a
product can be hot right now without being the most-wanted overall, and the
other way round. Raw epoch-millisecond timestamps are the source of truth;
the counters stored on the record are write-time caches.
"""

from __future__ import annotations

from dataclasses import dataclass

from scout_queue.core.settings import settings
from scout_queue.models.product_vote import URGENCY_NORMAL, URGENCY_TRENDING, URGENCY_URGENT

# Recent scans are worth five lifetime points when ordering the testing line.
RECENT_SCAN_MULTIPLIER = 5


@dataclass(frozen=True)
class VelocitySnapshot:
    """Velocity metrics for one barcode at a point in time."""

    scans_last_24h: int
    velocity_score: int
    urgency_flag: str

    @property
    def is_trending(self) -> bool:
        """Return True for trending or urgent products."""
        return self.urgency_flag != URGENCY_NORMAL


def prune_window(timestamps: list[int], now_ms: int, window_ms: int) -> list[int]:
    """Return the timestamps no older than ``now_ms - window_ms``, in order."""
    cutoff = now_ms - window_ms
    return [ts for ts in timestamps if ts >= cutoff]


def record_scan(
    timestamps: list[int] | None,
    now_ms: int,
    *,
    window_ms: int | None = None,
    max_entries: int | None = None,
) -> list[int]:
    """Append a scan at ``now_ms`` and prune the list to the window.

    Returns a new list; the input is not mutated so the ORM sees a changed
    JSON value.
    """
    window = settings.velocity_window_ms if window_ms is None else window_ms
    cap = settings.max_scan_timestamps if max_entries is None else max_entries
    kept = prune_window(list(timestamps or []), now_ms, window)
    kept.append(now_ms)
    return kept[-cap:]


def urgency_for(scans_last_24h: int) -> str:
    """Classify a 24h scan count into an urgency flag."""
    if scans_last_24h >= settings.urgent_scans_24h:
        return URGENCY_URGENT
    if scans_last_24h >= settings.trending_scans_24h:
        return URGENCY_TRENDING
    return URGENCY_NORMAL


def snapshot(timestamps: list[int] | None, total_weighted_votes: int, now_ms: int) -> VelocitySnapshot:
    """Compute velocity metrics from raw timestamps as of ``now_ms``.

    This is the live read path; use it instead of trusting the cached
    ``scans_last_24h`` stored on a record that has not been scanned lately.
    """
    recent = len(prune_window(list(timestamps or []), now_ms, settings.velocity_window_ms))
    return VelocitySnapshot(
        scans_last_24h=recent,
        velocity_score=recent * RECENT_SCAN_MULTIPLIER + total_weighted_votes,
        urgency_flag=urgency_for(recent),
    )

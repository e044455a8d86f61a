"""
History Merger

Fans out one fetch per hourly snapshot, then folds every valid record into a
per-balloon history keyed by its index in the snapshot array. Merging happens
on the calling thread as each fetch completes, so worker threads never touch
the shared history map.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from core.config import SNAPSHOT_HOURS
from core.models import MergeResult, ObjectHistory, Position, SnapshotResult
from core.track_metrics import compute_total_distance

logger = logging.getLogger(__name__)

Fetcher = Callable[[int], SnapshotResult]


class NoDataError(RuntimeError):
    """Every snapshot fetch failed; there is nothing to build histories from."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def merge_snapshot(
    histories: Dict[str, ObjectHistory],
    snapshot: SnapshotResult,
    now: datetime,
) -> int:
    """
    Append the valid records of one snapshot to their histories.

    Returns:
        Number of records accepted.
    """
    timestamp = now - timedelta(hours=snapshot.hour_offset)
    accepted = 0
    for index, record in enumerate(snapshot.records):
        position = Position.from_snapshot_record(record, snapshot.hour_offset, timestamp)
        if position is None:
            continue
        object_id = str(index)
        history = histories.get(object_id)
        if history is None:
            history = histories[object_id] = ObjectHistory(id=object_id)
        history.positions.append(position)
        accepted += 1
    return accepted


def finalize_history(history: ObjectHistory) -> ObjectHistory:
    """
    Order by hour offset for the distance pass (newest ingestion first within
    an hour), then leave the positions newest-first for current-position lookup.
    """
    history.positions.sort(key=lambda p: (p.hour_offset, -p.timestamp.timestamp()))
    history.total_distance = compute_total_distance(history.positions)
    history.positions.sort(key=lambda p: p.timestamp, reverse=True)
    return history


def merge_all(
    fetch: Optional[Fetcher] = None,
    hours: int = SNAPSHOT_HOURS,
    clock: Callable[[], datetime] = utc_now,
    max_workers: int = SNAPSHOT_HOURS,
) -> MergeResult:
    """
    Fetch every hourly snapshot concurrently and merge them.

    One failed hour never cancels its siblings; its hour offset is recorded in
    failed_hours and the rest are merged as usual.
    """
    if fetch is None:
        from snapshot_fetcher import fetch_snapshot as fetch

    histories: Dict[str, ObjectHistory] = {}
    failed_hours = []

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, hours))) as executor:
        future_to_hour = {executor.submit(fetch, hour): hour for hour in range(hours)}

        for future in as_completed(future_to_hour):
            hour = future_to_hour[future]
            try:
                snapshot = future.result()
            except Exception as e:
                logger.error(f"Unexpected error fetching hour {hour:02d}: {e}", exc_info=True)
                failed_hours.append(hour)
                continue

            if not snapshot.ok:
                failed_hours.append(hour)
                continue

            accepted = merge_snapshot(histories, snapshot, clock())
            logger.debug(f"Hour {hour:02d}: merged {accepted}/{len(snapshot.records)} records")

    for history in histories.values():
        finalize_history(history)

    histories = {oid: h for oid, h in histories.items() if h.positions}

    result = MergeResult(
        histories=histories,
        any_fetch_failed=bool(failed_hours),
        failed_hours=sorted(failed_hours),
        requested_hours=hours,
    )
    if result.any_fetch_failed:
        logger.warning(
            f"Data refreshed, but {len(failed_hours)}/{hours} hourly snapshots are missing: "
            f"{result.failed_hours}"
        )
    logger.info(f"Merged {len(histories)} balloon histories from {hours - len(failed_hours)} snapshots")
    return result


def build_histories(fetch: Optional[Fetcher] = None, **kwargs) -> MergeResult:
    """merge_all, but an all-failed refresh raises NoDataError instead of looking empty."""
    result = merge_all(fetch, **kwargs)
    if result.no_data:
        raise NoDataError(f"All {result.requested_hours} snapshot fetches failed")
    return result

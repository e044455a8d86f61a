"""
Snapshot Fetcher for the balloon constellation feed

Retrieves one hourly snapshot ({base_url}/00.json .. 23.json). Each snapshot is
a JSON array of [latitude, longitude, altitude] entries, indexed by balloon.

Failures (timeout, non-2xx, corrupted JSON) are reported through
SnapshotResult.ok and never raised, so one bad hour cannot sink a refresh. The
timeout bounds the whole request, body included.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from core.config import (
    CURRENT_SNAPSHOT_TIMEOUT_SEC,
    HISTORY_SNAPSHOT_TIMEOUT_SEC,
    SNAPSHOT_BASE_URL,
    SNAPSHOT_HOURS,
)
from core.http_utils import get_json_with_deadline
from core.models import SnapshotResult

logger = logging.getLogger(__name__)


def snapshot_url(hour_offset: int, base_url: str = SNAPSHOT_BASE_URL) -> str:
    return f"{base_url.rstrip('/')}/{hour_offset:02d}.json"


def snapshot_timeout(hour_offset: int) -> float:
    """The current hour is the largest file and the one we care most about."""
    return CURRENT_SNAPSHOT_TIMEOUT_SEC if hour_offset == 0 else HISTORY_SNAPSHOT_TIMEOUT_SEC


def fetch_snapshot(
    hour_offset: int,
    base_url: str = SNAPSHOT_BASE_URL,
    session: Optional[Any] = None,
) -> SnapshotResult:
    """
    Fetch a single hourly snapshot.

    Args:
        hour_offset: 0 for the current hour, 1 for one hour ago, ... 23.
        base_url: Feed root; the two-digit file name is appended.
        session: Optional requests.Session (or anything with a compatible get()).

    Returns:
        SnapshotResult with ok=False and no records on any transient failure.
    """
    if not 0 <= hour_offset < SNAPSHOT_HOURS:
        raise ValueError(f"hour_offset must be within 0..{SNAPSHOT_HOURS - 1}, got {hour_offset}")

    url = snapshot_url(hour_offset, base_url)

    try:
        data = get_json_with_deadline(url, snapshot_timeout(hour_offset), session=session)
    except requests.RequestException as e:
        logger.warning(f"Failed to fetch data for hour {hour_offset:02d}: {e}")
        return SnapshotResult(hour_offset=hour_offset, records=[], ok=False)
    except ValueError as e:
        logger.warning(f"Corrupted JSON data for hour {hour_offset:02d}: {e}")
        return SnapshotResult(hour_offset=hour_offset, records=[], ok=False)

    if not isinstance(data, list):
        logger.warning(f"Unexpected payload for hour {hour_offset:02d}: {type(data).__name__}, expected array")
        return SnapshotResult(hour_offset=hour_offset, records=[], ok=False)

    logger.debug(f"Hour {hour_offset:02d}: {len(data)} records")
    return SnapshotResult(hour_offset=hour_offset, records=data, ok=True)

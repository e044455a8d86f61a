from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from core.config import MAX_PATH_WINDOW_HOURS, MAX_SEGMENT_LON_DELTA_DEG, MIN_PATH_WINDOW_HOURS
from core.models import ObjectHistory, Position

LatLon = Tuple[float, float]
Segment = List[LatLon]


def _check_window(hours: int) -> None:
    if not MIN_PATH_WINDOW_HOURS <= hours <= MAX_PATH_WINDOW_HOURS:
        raise ValueError(
            f"Path window must be {MIN_PATH_WINDOW_HOURS}-{MAX_PATH_WINDOW_HOURS} hours, got {hours}"
        )


def split_path_segments(positions: Sequence[Position]) -> List[Segment]:
    """
    Split a chronologically ascending track into drawable polylines.

    A longitude jump of more than 180 degrees between consecutive fixes means
    the balloon crossed the antimeridian; joining those fixes would draw a line
    across the whole map, so a new segment starts there.

    Returns:
        Segments of (lat, lon) tuples. Segments with fewer than 2 points are dropped.
    """
    segments: List[Segment] = []
    current: Segment = []
    prev_lon: Optional[float] = None

    for pos in positions:
        if prev_lon is not None and abs(pos.longitude - prev_lon) > MAX_SEGMENT_LON_DELTA_DEG:
            if len(current) > 1:
                segments.append(current)
            current = []
        current.append((pos.latitude, pos.longitude))
        prev_lon = pos.longitude

    if len(current) > 1:
        segments.append(current)
    return segments


def positions_in_window(history: ObjectHistory, hours: int, now: datetime) -> List[Position]:
    """Positions no older than `hours`, oldest first."""
    _check_window(hours)
    cutoff = now - timedelta(hours=hours)
    return [p for p in history.sorted_positions() if p.timestamp >= cutoff]


def build_paths(histories: Mapping[str, ObjectHistory], hours: int, now: datetime) -> Dict[str, List[Segment]]:
    """Path segments per balloon for the look-back window; balloons with nothing to draw are omitted."""
    _check_window(hours)
    paths: Dict[str, List[Segment]] = {}
    for object_id, history in histories.items():
        segments = split_path_segments(positions_in_window(history, hours, now))
        if segments:
            paths[object_id] = segments
    return paths


def count_visible_paths(histories: Mapping[str, ObjectHistory], hours: int, now: datetime) -> int:
    """Balloons with more than one fix inside the window."""
    return sum(1 for h in histories.values() if len(positions_in_window(h, hours, now)) > 1)


def path_origin(segments: Sequence[Segment]) -> Optional[LatLon]:
    """Oldest visible point of a path, where the start marker goes."""
    if not segments or not segments[0]:
        return None
    return segments[0][0]

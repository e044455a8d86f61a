from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Mapping, Sequence

from core.geodesy import is_point_in_polygon
from core.models import HazardFeature, ObjectHistory, Position

logger = logging.getLogger(__name__)

AlertMatch = Dict[str, List[Dict[str, Any]]]


def matches_for(position: Position, hazards: Sequence[HazardFeature]) -> List[Dict[str, Any]]:
    """
    Properties of every hazard whose polygon contains the position, in feed order.
    Hazard rings are (lon, lat); the position is passed in that order too.
    """
    matches = []
    for hazard in hazards:
        if len(hazard.polygon) < 3:
            continue
        if is_point_in_polygon(position.longitude, position.latitude, hazard.polygon):
            matches.append(dict(hazard.properties))
    return matches


def match_all(
    histories: Mapping[str, ObjectHistory],
    hazards: Sequence[HazardFeature],
    max_workers: int = 8,
) -> AlertMatch:
    """
    Match each balloon's current position against the hazard set.

    Balloons are independent and the hazard list is only read, so they are
    matched on a thread pool; each result lands in its own slot.
    Balloons without a current position are left out.
    """
    located = {oid: h.current_position for oid, h in histories.items() if h.current_position is not None}
    if not located:
        return {}
    if not hazards:
        return {oid: [] for oid in located}

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {oid: executor.submit(matches_for, pos, hazards) for oid, pos in located.items()}
        results: AlertMatch = {oid: future.result() for oid, future in futures.items()}

    flagged = sum(1 for m in results.values() if m)
    logger.info(f"Alert matching: {flagged}/{len(results)} balloons inside {len(hazards)} hazard polygons")
    return results

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

import numpy as np

from core.config import MAX_SEGMENT_DISTANCE_KM, MAX_SEGMENT_LON_DELTA_DEG
from core.geodesy import haversine_km
from core.models import DistanceRank, ObjectHistory, PopulationStats, Position, RankDirection

# Hue stops of the distance gradient: blue (short) -> green (average) -> red (long)
HUE_LOW = 240.0
HUE_AVERAGE = 120.0
HUE_HIGH = 0.0


def segment_is_plausible(pos1: Position, pos2: Position, distance_km: float) -> bool:
    """
    Hourly hops that jump the antimeridian or exceed 2000 km are treated as
    bad data and left out of the total.
    """
    return (
        abs(pos1.longitude - pos2.longitude) < MAX_SEGMENT_LON_DELTA_DEG
        and distance_km < MAX_SEGMENT_DISTANCE_KM
    )


def compute_total_distance(positions: Sequence[Position]) -> float:
    """
    Cumulative great-circle distance (km) over consecutive positions.

    Args:
        positions: Fixes ordered by hour offset.

    Returns:
        Sum of the plausible segments only; rejected segments are skipped.
    """
    total = 0.0
    for pos1, pos2 in zip(positions, positions[1:]):
        d = haversine_km(pos1.latitude, pos1.longitude, pos2.latitude, pos2.longitude)
        if segment_is_plausible(pos1, pos2, d):
            total += d
    return total


def compute_population_stats(histories: Iterable[ObjectHistory] | Mapping[str, ObjectHistory]) -> PopulationStats:
    if isinstance(histories, Mapping):
        histories = histories.values()
    distances = np.array([h.total_distance for h in histories], dtype=float)
    if distances.size == 0:
        return PopulationStats()
    return PopulationStats(
        max_distance=float(distances.max()),
        average_distance=float(distances.mean()),
        object_count=int(distances.size),
    )


def classify_distance(total_distance: float, average_distance: float, max_distance: float) -> DistanceRank:
    """
    Place a distance on a low -> average -> high scale.

    Below average the rank runs 0..1 from zero distance up to the average.
    From the average up, it runs 0..1 towards the population maximum. A
    distance equal to the average counts as "above" with rank 0.
    """
    if average_distance <= 0:
        return DistanceRank(0.5, RankDirection.NEUTRAL)

    if total_distance < average_distance:
        return DistanceRank(total_distance / average_distance, RankDirection.BELOW)

    range_above_average = max_distance - average_distance
    if range_above_average <= 0:
        return DistanceRank(0.0, RankDirection.ABOVE)

    ratio = min((total_distance - average_distance) / range_above_average, 1.0)
    return DistanceRank(ratio, RankDirection.ABOVE)


def rank_hue(rank: DistanceRank) -> float:
    if rank.direction is RankDirection.BELOW:
        return HUE_LOW - rank.rank * (HUE_LOW - HUE_AVERAGE)
    if rank.direction is RankDirection.ABOVE:
        return HUE_AVERAGE - rank.rank * (HUE_AVERAGE - HUE_HIGH)
    return HUE_AVERAGE


def rank_color(rank: DistanceRank, saturation: int = 80, lightness: int = 50) -> str:
    return f"hsl({rank_hue(rank):.0f}, {saturation}%, {lightness}%)"


def rank_population(histories: Mapping[str, ObjectHistory], stats: PopulationStats) -> dict:
    """Rank every history against the shared population stats."""
    return {
        object_id: classify_distance(h.total_distance, stats.average_distance, stats.max_distance)
        for object_id, h in histories.items()
    }

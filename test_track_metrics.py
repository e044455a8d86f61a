"""
Tests for core/track_metrics.py - distance totals, population stats, ranking.

Usage:
    pytest test_track_metrics.py
"""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent))

from core.geodesy import haversine_km
from core.models import DistanceRank, ObjectHistory, PopulationStats, Position, RankDirection
from core.track_metrics import (
    classify_distance,
    compute_population_stats,
    compute_total_distance,
    rank_color,
    rank_hue,
    rank_population,
)

NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)


def make_positions(coords):
    """coords: [(lat, lon), ...] ordered by hour offset (0 first)."""
    return [
        Position(latitude=lat, longitude=lon, altitude=15.0, timestamp=NOW - timedelta(hours=h), hour_offset=h)
        for h, (lat, lon) in enumerate(coords)
    ]


def make_history(object_id: str, total: float) -> ObjectHistory:
    return ObjectHistory(id=object_id, positions=make_positions([(0.0, 0.0)]), total_distance=total)


# ============================================================================
# Distance engine
# ============================================================================

def test_total_distance_sums_consecutive_hops():
    positions = make_positions([(10.0, 10.0), (10.5, 10.5), (11.0, 11.2)])
    expected = haversine_km(10.0, 10.0, 10.5, 10.5) + haversine_km(10.5, 10.5, 11.0, 11.2)
    assert compute_total_distance(positions) == pytest.approx(expected)


def test_total_distance_of_single_or_no_position_is_zero():
    assert compute_total_distance([]) == 0.0
    assert compute_total_distance(make_positions([(10.0, 10.0)])) == 0.0


def test_antimeridian_hop_is_excluded():
    positions = make_positions([(0.0, 178.0), (0.0, 179.5), (0.0, -179.5), (0.0, -178.0)])
    expected = haversine_km(0.0, 178.0, 0.0, 179.5) + haversine_km(0.0, -179.5, 0.0, -178.0)
    assert compute_total_distance(positions) == pytest.approx(expected)


def test_hop_over_2000_km_is_excluded():
    # 0,0 -> 0,30 is ~3336 km in one hour
    positions = make_positions([(0.0, 0.0), (0.0, 30.0), (0.0, 31.0)])
    assert haversine_km(0.0, 0.0, 0.0, 30.0) > 2000
    assert compute_total_distance(positions) == pytest.approx(haversine_km(0.0, 30.0, 0.0, 31.0))


def test_filter_never_exceeds_sum_of_legs():
    a, b, c = (0.0, 0.0), (0.0, 5.0), (0.0, 10.0)
    total = compute_total_distance(make_positions([a, b, c]))
    assert haversine_km(*a, *c) <= total + 1e-9


# ============================================================================
# Population stats
# ============================================================================

def test_population_stats_empty():
    assert compute_population_stats({}) == PopulationStats(0.0, 0.0, 0)


def test_population_stats_max_and_mean():
    histories = {h.id: h for h in (make_history("0", 100.0), make_history("1", 200.0), make_history("2", 0.0))}
    stats = compute_population_stats(histories)
    assert stats.max_distance == pytest.approx(200.0)
    assert stats.average_distance == pytest.approx(100.0)
    assert stats.object_count == 3


def test_population_stats_are_immutable():
    stats = PopulationStats(1.0, 1.0, 1)
    with pytest.raises(Exception):
        stats.max_distance = 5.0


# ============================================================================
# Rank mapper
# ============================================================================

@pytest.mark.parametrize(
    "total, average, maximum, expected",
    [
        (50.0, 100.0, 300.0, DistanceRank(0.5, RankDirection.BELOW)),
        (0.0, 100.0, 300.0, DistanceRank(0.0, RankDirection.BELOW)),
        (100.0, 100.0, 300.0, DistanceRank(0.0, RankDirection.ABOVE)),
        (200.0, 100.0, 300.0, DistanceRank(0.5, RankDirection.ABOVE)),
        (300.0, 100.0, 300.0, DistanceRank(1.0, RankDirection.ABOVE)),
        (450.0, 100.0, 300.0, DistanceRank(1.0, RankDirection.ABOVE)),
        (0.0, 0.0, 0.0, DistanceRank(0.5, RankDirection.NEUTRAL)),
        (120.0, 100.0, 100.0, DistanceRank(0.0, RankDirection.ABOVE)),
    ],
)
def test_classify_distance(total, average, maximum, expected):
    result = classify_distance(total, average, maximum)
    assert result.direction is expected.direction
    assert result.rank == pytest.approx(expected.rank)


def test_rank_direction_values_are_plain_strings():
    assert RankDirection.BELOW == "below"
    assert RankDirection("neutral") is RankDirection.NEUTRAL


def test_rank_hue_gradient():
    assert rank_hue(DistanceRank(0.0, RankDirection.BELOW)) == pytest.approx(240.0)
    assert rank_hue(DistanceRank(0.5, RankDirection.BELOW)) == pytest.approx(180.0)
    assert rank_hue(DistanceRank(0.0, RankDirection.ABOVE)) == pytest.approx(120.0)
    assert rank_hue(DistanceRank(1.0, RankDirection.ABOVE)) == pytest.approx(0.0)
    assert rank_hue(DistanceRank(0.5, RankDirection.NEUTRAL)) == pytest.approx(120.0)


def test_rank_color_formats_hsl():
    assert rank_color(DistanceRank(0.5, RankDirection.NEUTRAL)) == "hsl(120, 80%, 50%)"
    assert rank_color(DistanceRank(1.0, RankDirection.ABOVE), saturation=60, lightness=40) == "hsl(0, 60%, 40%)"


def test_rank_population_uses_shared_stats():
    histories = {h.id: h for h in (make_history("0", 50.0), make_history("1", 150.0))}
    stats = compute_population_stats(histories)
    ranks = rank_population(histories, stats)
    assert ranks["0"] == DistanceRank(0.5, RankDirection.BELOW)
    assert ranks["1"].direction is RankDirection.ABOVE
    assert ranks["1"].rank == pytest.approx(1.0)

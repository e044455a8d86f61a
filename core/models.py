from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple


def _as_number(value: Any) -> Optional[float]:
    """Return value as a float if it is a real, finite number, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return value


@dataclass(slots=True)
class Position:
    """
    One validated balloon fix from an hourly snapshot.
    Altitude is in kilometres.
    """
    latitude: float
    longitude: float
    altitude: float
    timestamp: datetime
    hour_offset: int

    @classmethod
    def from_snapshot_record(
        cls,
        record: Any,
        hour_offset: int,
        timestamp: datetime,
    ) -> Optional[Position]:
        """
        Parse a raw snapshot entry into a Position.

        Snapshot entries look like [latitude, longitude, altitude, ...]. The feed
        uses null and the all-zero triple [0, 0, 0] to mean "no data".

        Returns:
            Position, or None when the record must be skipped.
        """
        if not isinstance(record, (list, tuple)) or len(record) < 3:
            return None

        lat = _as_number(record[0])
        lon = _as_number(record[1])
        if lat is None or lon is None:
            return None
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
            return None

        raw_alt = _as_number(record[2])
        if lat == 0 and lon == 0 and raw_alt == 0:
            return None
        alt = raw_alt if raw_alt is not None else 0.0

        return cls(
            latitude=lat,
            longitude=lon,
            altitude=alt,
            timestamp=timestamp,
            hour_offset=hour_offset,
        )


@dataclass
class ObjectHistory:
    # id is the array index inside each hourly snapshot; it assumes the feed
    # keeps the same order from hour to hour.
    id: str
    positions: List[Position] = field(default_factory=list)
    total_distance: float = 0.0

    @property
    def current_position(self) -> Optional[Position]:
        """Most recent fix (positions are kept newest first after merging)."""
        return self.positions[0] if self.positions else None

    def sorted_positions(self) -> List[Position]:
        return sorted(self.positions, key=lambda p: p.timestamp)


@dataclass(frozen=True)
class PopulationStats:
    max_distance: float = 0.0
    average_distance: float = 0.0
    object_count: int = 0


class RankDirection(str, Enum):
    BELOW = "below"
    ABOVE = "above"
    NEUTRAL = "neutral"


class DistanceRank(NamedTuple):
    rank: float
    direction: RankDirection


@dataclass(frozen=True)
class HazardFeature:
    """
    Weather hazard polygon. The ring is stored as (longitude, latitude)
    pairs, the GeoJSON order.
    """
    id: str
    polygon: Tuple[Tuple[float, float], ...]
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SnapshotResult:
    hour_offset: int
    records: List[Any] = field(default_factory=list)
    ok: bool = True


@dataclass
class MergeResult:
    histories: Dict[str, ObjectHistory] = field(default_factory=dict)
    any_fetch_failed: bool = False
    failed_hours: List[int] = field(default_factory=list)
    requested_hours: int = 24

    @property
    def no_data(self) -> bool:
        """True when every snapshot fetch failed, as opposed to an empty feed."""
        return self.requested_hours > 0 and len(self.failed_hours) >= self.requested_hours

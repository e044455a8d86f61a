"""
Hazard feed for weather alerts (NWS active alerts, GeoJSON FeatureCollection).

Fetching walks an ordered list of sources: the mediated proxy first (when one
is configured), then the API directly. If every source fails the caller gets
None and carries on without alerts; tracking never waits on this feed.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from core.config import ALERTS_DIRECT_URL, ALERTS_TIMEOUT_SEC, ALERTS_USER_AGENT, TrackerConfig
from core.http_utils import get_json_with_deadline
from core.models import HazardFeature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HazardFeedSource:
    name: str
    url: str
    timeout: float = ALERTS_TIMEOUT_SEC


def default_sources(config: Optional[TrackerConfig] = None) -> List[HazardFeedSource]:
    if config is None:
        return [HazardFeedSource("direct", ALERTS_DIRECT_URL)]
    sources = []
    if config.alerts_proxy_url:
        sources.append(HazardFeedSource("mediated", config.alerts_proxy_url, config.alerts_timeout))
    sources.append(HazardFeedSource("direct", config.alerts_url, config.alerts_timeout))
    return sources


def _fetch_from_source(
    source: HazardFeedSource,
    session: Optional[Any],
    user_agent: str,
) -> Optional[Dict[str, Any]]:
    headers = {"User-Agent": user_agent, "Accept": "application/geo+json"}
    try:
        collection = get_json_with_deadline(source.url, source.timeout, session=session, headers=headers)
    except requests.RequestException as e:
        logger.warning(f"Hazard feed ({source.name}) request failed: {e}")
        return None
    except ValueError as e:
        logger.warning(f"Hazard feed ({source.name}) returned invalid JSON: {e}")
        return None

    if not isinstance(collection, dict) or not isinstance(collection.get("features"), list):
        logger.warning(f"Hazard feed ({source.name}) is not a FeatureCollection")
        return None
    return collection


def fetch_hazard_collection(
    sources: Sequence[HazardFeedSource],
    session: Optional[Any] = None,
    user_agent: str = ALERTS_USER_AGENT,
) -> Optional[Dict[str, Any]]:
    """
    Try each source once, in order.

    Returns:
        The first valid FeatureCollection, or None when all sources failed.
    """
    for source in sources:
        collection = _fetch_from_source(source, session, user_agent)
        if collection is not None:
            logger.info(f"Hazard feed loaded via {source.name}: {len(collection['features'])} features")
            return collection
    logger.error("Hazard feed unavailable from all sources; continuing without alerts")
    return None


def _parse_ring(coordinates: Any) -> Optional[Tuple[Tuple[float, float], ...]]:
    """Outer ring of a GeoJSON Polygon as (lon, lat) pairs, or None if unusable."""
    if not isinstance(coordinates, list) or not coordinates:
        return None
    ring = coordinates[0]
    if not isinstance(ring, list) or len(ring) < 3:
        return None

    pairs = []
    for coord in ring:
        if not isinstance(coord, (list, tuple)) or len(coord) < 2:
            return None
        lon, lat = coord[0], coord[1]
        for value in (lon, lat):
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                return None
        pairs.append((float(lon), float(lat)))
    return tuple(pairs)


def parse_hazard_features(collection: Optional[Dict[str, Any]]) -> List[HazardFeature]:
    """
    Keep the Polygon features with a usable outer ring (3+ numeric vertices).
    Everything else is skipped with a warning.
    """
    if not collection or not isinstance(collection.get("features"), list):
        return []

    hazards: List[HazardFeature] = []
    skipped = 0
    for index, feature in enumerate(collection["features"]):
        if not isinstance(feature, dict):
            skipped += 1
            logger.warning(f"Skipping hazard feature {index}: not an object")
            continue

        properties = feature.get("properties") or {}
        hazard_id = str(properties.get("id") or feature.get("id") or f"feature-{index}")
        geometry = feature.get("geometry")

        # Alerts issued for forecast zones come without geometry; nothing to match against
        if not isinstance(geometry, dict) or geometry.get("type") != "Polygon":
            skipped += 1
            logger.debug(f"Skipping hazard {hazard_id}: no Polygon geometry")
            continue

        ring = _parse_ring(geometry.get("coordinates"))
        if ring is None:
            skipped += 1
            logger.warning(f"Skipping hazard {hazard_id}: invalid polygon coordinates")
            continue

        hazards.append(HazardFeature(id=hazard_id, polygon=ring, properties=dict(properties)))

    logger.info(f"Parsed {len(hazards)} hazard polygons ({skipped} skipped)")
    return hazards


def load_hazards(
    sources: Sequence[HazardFeedSource],
    session: Optional[Any] = None,
    user_agent: str = ALERTS_USER_AGENT,
) -> Tuple[List[HazardFeature], bool]:
    """
    Returns:
        (hazards, feed_available). An unavailable feed yields ([], False).
    """
    collection = fetch_hazard_collection(sources, session=session, user_agent=user_agent)
    if collection is None:
        return [], False
    return parse_hazard_features(collection), True

"""
Balloon Constellation Tracker

Rebuilds the last 24 hours of balloon tracks from the hourly snapshot feed and
cross-references each balloon's current position with active weather hazards.

Features:
- Hourly position cycle: 24 concurrent snapshot fetches, merged into histories
- 24h great-circle distance per balloon, population max/average, relative rank
- 15-minute alert cycle against the latest positions (fails open)
- Each cycle publishes an immutable snapshot; readers never see a partial refresh
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from alerts.alert_matcher import match_all
from alerts.hazard_feed import default_sources, load_hazards
from core.config import MAX_PATH_WINDOW_HOURS, MIN_PATH_WINDOW_HOURS, TrackerConfig, load_tracker_config
from core.geodesy import flight_level
from core.history import Fetcher, NoDataError, build_histories, utc_now
from core.models import DistanceRank, HazardFeature, ObjectHistory, PopulationStats
from core.path_utils import Segment, build_paths, count_visible_paths
from core.track_metrics import compute_population_stats, rank_population
from snapshot_fetcher import fetch_snapshot

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 300
MAX_CONSECUTIVE_ERRORS = 5

HazardLoader = Callable[[], Tuple[List[HazardFeature], bool]]


@dataclass(frozen=True)
class TrackerSnapshot:
    histories: Mapping[str, ObjectHistory]
    stats: PopulationStats
    ranks: Mapping[str, DistanceRank]
    any_fetch_failed: bool
    failed_hours: Tuple[int, ...]
    refreshed_at: datetime


@dataclass(frozen=True)
class AlertSnapshot:
    matches: Mapping[str, List[Dict[str, Any]]] = field(default_factory=lambda: MappingProxyType({}))
    hazard_count: int = 0
    feed_available: bool = False
    refreshed_at: Optional[datetime] = None


class ConstellationTracker:
    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        session: Optional[Any] = None,
        fetch: Optional[Fetcher] = None,
        hazard_loader: Optional[HazardLoader] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            config: Tracker settings (defaults to tracker_config.json + env).
            session: Optional HTTP session shared by both feeds.
            fetch: Snapshot fetcher override, fetch(hour_offset) -> SnapshotResult.
            hazard_loader: Hazard loader override, () -> (hazards, feed_available).
            clock: Returns the current UTC time.
        """
        self.config = config or load_tracker_config()
        self.clock = clock
        self.fetch = fetch or partial(fetch_snapshot, base_url=self.config.base_url, session=session)
        self.hazard_loader = hazard_loader or partial(
            load_hazards,
            default_sources(self.config),
            session=session,
            user_agent=self.config.user_agent,
        )

        self._lock = threading.Lock()
        self._positions: Optional[TrackerSnapshot] = None
        self._alerts = AlertSnapshot()
        self._stop_event = threading.Event()
        self.cycle_count = 0

    @property
    def positions(self) -> Optional[TrackerSnapshot]:
        with self._lock:
            return self._positions

    @property
    def alerts(self) -> AlertSnapshot:
        with self._lock:
            return self._alerts

    def refresh_positions(self) -> Optional[TrackerSnapshot]:
        """
        Rebuild histories, distances and ranks from scratch.

        Returns:
            The new snapshot, or None when every fetch failed (the previous
            snapshot stays published).
        """
        logger.info(f"Refreshing positions from {self.config.hours} hourly snapshots...")
        try:
            merged = build_histories(
                self.fetch,
                hours=self.config.hours,
                clock=self.clock,
                max_workers=self.config.max_workers,
            )
        except NoDataError as e:
            logger.error(f"No balloon data this cycle, keeping previous results: {e}")
            return None

        stats = compute_population_stats(merged.histories)
        snapshot = TrackerSnapshot(
            histories=MappingProxyType(merged.histories),
            stats=stats,
            ranks=MappingProxyType(rank_population(merged.histories, stats)),
            any_fetch_failed=merged.any_fetch_failed,
            failed_hours=tuple(merged.failed_hours),
            refreshed_at=self.clock(),
        )
        with self._lock:
            self._positions = snapshot

        self._log_positions_summary(snapshot)
        return snapshot

    def refresh_alerts(self) -> AlertSnapshot:
        """Match the latest published positions against a fresh hazard set."""
        current = self.positions
        hazards, feed_available = self.hazard_loader()

        matches: Dict[str, List[Dict[str, Any]]] = {}
        if current is not None:
            matches = match_all(current.histories, hazards, max_workers=self.config.max_workers)
        else:
            logger.info("No positions yet, alert matching skipped")

        snapshot = AlertSnapshot(
            matches=MappingProxyType(matches),
            hazard_count=len(hazards),
            feed_available=feed_available,
            refreshed_at=self.clock(),
        )
        with self._lock:
            self._alerts = snapshot
        return snapshot

    def paths(self, hours: Optional[int] = None) -> Dict[str, List[Segment]]:
        """Path segments per balloon for a 1-24 hour look-back window."""
        current = self.positions
        if current is None:
            return {}
        window = hours if hours is not None else self.config.path_window_hours
        return build_paths(current.histories, window, self.clock())

    def _log_positions_summary(self, snapshot: TrackerSnapshot):
        stats = snapshot.stats
        window = self.config.path_window_hours
        visible = count_visible_paths(snapshot.histories, window, self.clock())
        logger.info(
            f"Total balloons: {stats.object_count} | Visible paths ({window}h): {visible} | "
            f"Avg distance: {stats.average_distance:.0f} km | Max distance: {stats.max_distance:.0f} km"
        )

        located = [h.current_position for h in snapshot.histories.values() if h.current_position]
        if located:
            highest = max(located, key=lambda p: p.altitude)
            logger.info(
                f"Highest balloon: FL{flight_level(highest.altitude):03d} "
                f"at ({highest.latitude:.4f}, {highest.longitude:.4f})"
            )
        if snapshot.any_fetch_failed:
            logger.warning("Data refreshed, but some hourly data might be missing.")

    def stop(self):
        self._stop_event.set()

    @property
    def should_stop(self) -> bool:
        return self._stop_event.is_set()

    def run_once(self):
        self.refresh_positions()
        self.refresh_alerts()

    def run(self):
        """Main loop: position cycle and alert cycle on their own schedules."""
        logger.info("=" * 80)
        logger.info("Starting Balloon Constellation Tracker")
        logger.info("=" * 80)
        logger.info(f"Snapshot feed: {self.config.base_url} ({self.config.hours} hours)")
        logger.info(f"Position refresh: every {self.config.position_interval}s")
        logger.info(f"Alert refresh: every {self.config.alert_interval}s")
        logger.info("=" * 80)

        next_positions = 0.0
        next_alerts = 0.0
        last_heartbeat = time.monotonic()
        consecutive_errors = 0

        while not self.should_stop:
            try:
                now = time.monotonic()
                if now >= next_positions:
                    self.refresh_positions()
                    self.cycle_count += 1
                    next_positions = now + self.config.position_interval
                if now >= next_alerts:
                    self.refresh_alerts()
                    next_alerts = now + self.config.alert_interval

                if now - last_heartbeat >= HEARTBEAT_INTERVAL:
                    current = self.positions
                    count = current.stats.object_count if current else 0
                    logger.info(f"HEARTBEAT: Service alive. Balloons: {count}, Position cycles: {self.cycle_count}")
                    last_heartbeat = now

                consecutive_errors = 0
                self._stop_event.wait(max(0.0, min(next_positions, next_alerts) - time.monotonic()))

            except KeyboardInterrupt:
                logger.info("Received keyboard interrupt, shutting down...")
                break
            except Exception as e:
                consecutive_errors += 1
                logger.error(
                    f"CRITICAL ERROR in main loop (error {consecutive_errors}/{MAX_CONSECUTIVE_ERRORS}): {e}",
                    exc_info=True,
                )
                if consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                    logger.critical(f"Too many consecutive errors ({consecutive_errors}). Exiting...")
                    break

                sleep_time = min(60, 2 ** consecutive_errors)
                logger.info(f"Sleeping {sleep_time}s before retry...")
                self._stop_event.wait(sleep_time)

        logger.info("Tracker shutdown complete")


def setup_logging(config: TrackerConfig):
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file, encoding="utf-8"))
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Track the balloon constellation and weather hazards")
    parser.add_argument("--config", default=None, help="Path to tracker_config.json")
    parser.add_argument("--once", action="store_true", help="Run one refresh of each cycle and exit")
    parser.add_argument("--hours", type=int, default=None, help="Path look-back window (1-24)")
    args = parser.parse_args(argv)
    if args.hours is not None and not MIN_PATH_WINDOW_HOURS <= args.hours <= MAX_PATH_WINDOW_HOURS:
        parser.error(f"--hours must be within {MIN_PATH_WINDOW_HOURS}-{MAX_PATH_WINDOW_HOURS}, got {args.hours}")

    config = load_tracker_config(args.config)
    setup_logging(config)
    tracker = ConstellationTracker(config)

    if args.once:
        tracker.run_once()
        paths = tracker.paths(args.hours)
        alerts = tracker.alerts
        flagged = sum(1 for m in alerts.matches.values() if m)
        logger.info(f"Paths drawn: {len(paths)} | Balloons under active alerts: {flagged}")
        return 0 if tracker.positions is not None else 1

    def _signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        tracker.stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)
    tracker.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())

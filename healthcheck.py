"""
Health Check Script for the Balloon Tracker

This script checks the tracker's upstream feeds:
1. The current-hour snapshot is reachable and parses (required)
2. The hazard feed is reachable (reported only; alerts fail open)

Exit codes:
0 - Healthy
1 - Unhealthy
"""

import logging
import sys
from pathlib import Path

# Add root to path for imports
sys.path.append(str(Path(__file__).resolve().parent))

from alerts.hazard_feed import default_sources, fetch_hazard_collection
from core.config import load_tracker_config
from snapshot_fetcher import fetch_snapshot

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def check_snapshot_feed(config) -> bool:
    """Check that the current-hour snapshot can be fetched."""
    result = fetch_snapshot(0, base_url=config.base_url)
    return result.ok


def check_hazard_feed(config) -> bool:
    return fetch_hazard_collection(default_sources(config), user_agent=config.user_agent) is not None


def main() -> int:
    """Run health checks."""
    config = load_tracker_config()

    if check_hazard_feed(config):
        print("✓ Hazard feed OK")
    else:
        print("✗ Hazard feed unavailable (tracking continues without alerts)")

    if check_snapshot_feed(config):
        print("\n✓ Health check PASSED (snapshot feed reachable)")
        return 0
    print("\n✗ Health check FAILED (current snapshot unavailable)")
    return 1


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

TRACKER_CONFIG_PATH = Path(__file__).resolve().parent.parent / "tracker_config.json"

# Snapshot feed
SNAPSHOT_BASE_URL = "https://a.windbornesystems.com/treasure"
SNAPSHOT_HOURS = 24
CURRENT_SNAPSHOT_TIMEOUT_SEC = 20.0
HISTORY_SNAPSHOT_TIMEOUT_SEC = 10.0

# Hazard feed (NWS active alerts, GeoJSON)
ALERTS_DIRECT_URL = "https://api.weather.gov/alerts/active"
ALERTS_TIMEOUT_SEC = 15.0
ALERTS_USER_AGENT = "balloon-tracker (ops@example.com)"

# Refresh cycles
POSITION_REFRESH_INTERVAL = 60 * 60
ALERT_REFRESH_INTERVAL = 15 * 60

# Distance engine outlier thresholds. Kept as found, they are not tuned.
MAX_SEGMENT_LON_DELTA_DEG = 180.0
MAX_SEGMENT_DISTANCE_KM = 2000.0

# Path look-back window bounds (hours)
MIN_PATH_WINDOW_HOURS = 1
MAX_PATH_WINDOW_HOURS = 24

_ENV_OVERRIDES = {
    "base_url": "TRACKER_BASE_URL",
    "alerts_proxy_url": "TRACKER_ALERTS_PROXY_URL",
    "alerts_url": "TRACKER_ALERTS_URL",
    "user_agent": "TRACKER_USER_AGENT",
    "log_level": "TRACKER_LOG_LEVEL",
    "log_file": "TRACKER_LOG_FILE",
}


@dataclass(frozen=True)
class TrackerConfig:
    base_url: str = SNAPSHOT_BASE_URL
    hours: int = SNAPSHOT_HOURS
    alerts_proxy_url: Optional[str] = None
    alerts_url: str = ALERTS_DIRECT_URL
    alerts_timeout: float = ALERTS_TIMEOUT_SEC
    user_agent: str = ALERTS_USER_AGENT
    position_interval: int = POSITION_REFRESH_INTERVAL
    alert_interval: int = ALERT_REFRESH_INTERVAL
    path_window_hours: int = MAX_PATH_WINDOW_HOURS
    max_workers: int = SNAPSHOT_HOURS
    log_level: str = "INFO"
    log_file: Optional[str] = "balloon_tracker.log"


@lru_cache(maxsize=None)
def load_tracker_config(path: str | Path | None = None) -> TrackerConfig:
    """
    Load tracker settings from JSON, then apply TRACKER_* environment overrides.
    A missing file yields the defaults.
    """
    cfg_path = Path(path) if path else TRACKER_CONFIG_PATH
    raw: Dict[str, Any] = {}
    if cfg_path.exists():
        with cfg_path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)

    known = {f.name for f in fields(TrackerConfig)}
    values = {key: value for key, value in raw.items() if key in known}

    for key, env_name in _ENV_OVERRIDES.items():
        env_value = os.getenv(env_name)
        if env_value:
            values[key] = env_value

    return TrackerConfig(**values)

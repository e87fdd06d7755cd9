"""Menstrual cycle tracking for SafeLink.

Cycle entries are sensitive health data and never leave the offline store;
there is no remote sync.

Modules:
    cycle_tracker — CycleTracker: load/save the aggregate, calendar and status views
    predictions   — Pure calendar prediction formula and day classification
    dates         — Calendar-day helpers
    config_loader — Load/validate/hot-reload tracker_config.yaml
"""

from safelink.tracker.config_loader import TrackerConfig, get_tracker_config
from safelink.tracker.cycle_tracker import CycleTracker, new_entry_id
from safelink.tracker.predictions import compute_predictions

__all__ = [
    "CycleTracker",
    "new_entry_id",
    "compute_predictions",
    "TrackerConfig",
    "get_tracker_config",
]

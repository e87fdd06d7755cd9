"""Load, validate, and hot-reload the cycle tracker configuration.

The config lives in ``tracker_config.yaml`` alongside this module.  It is
loaded once and cached; ``reload_tracker_config()`` re-reads it from disk
without a restart.

Usage::

    from safelink.tracker.config_loader import get_tracker_config

    config = get_tracker_config()
    config.prediction.luteal_phase_days   # 14
    config.limits.check_cycle_length(30)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("safelink.tracker.config")

_CONFIG_PATH = Path(__file__).parent / "tracker_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class PredictionConfig:
    """Offsets used by the calendar prediction formula."""

    luteal_phase_days: int = 14
    fertile_days_before: int = 5
    fertile_days_after: int = 1


@dataclass
class CycleLimits:
    """Accepted ranges for user-adjustable cycle settings."""

    min_cycle_days: int = 15
    max_cycle_days: int = 90
    typical_min_days: int = 21
    typical_max_days: int = 45
    min_period_days: int = 1
    max_period_days: int = 15

    def check_cycle_length(self, days: int) -> int:
        """Return ``days`` if it is an accepted cycle length.

        Raises:
            ValueError: If outside [min_cycle_days, max_cycle_days].
        """
        if not (self.min_cycle_days <= days <= self.max_cycle_days):
            raise ValueError(
                f"Cycle length must be between {self.min_cycle_days} and "
                f"{self.max_cycle_days} days, got {days}"
            )
        return days

    def check_period_length(self, days: int) -> int:
        """Return ``days`` if it is an accepted period length.

        Raises:
            ValueError: If outside [min_period_days, max_period_days].
        """
        if not (self.min_period_days <= days <= self.max_period_days):
            raise ValueError(
                f"Period length must be between {self.min_period_days} and "
                f"{self.max_period_days} days, got {days}"
            )
        return days


@dataclass
class TrackerConfig:
    """Complete, validated tracker configuration.

    Attributes:
        version:               Config schema version string.
        default_cycle_length:  Cycle length for a fresh aggregate.
        default_period_length: Period length for a fresh aggregate.
        prediction:            Prediction formula offsets.
        limits:                Accepted ranges for user settings.
        recent_entries:        Default size of the recent entries list.
    """

    version: str = "1.0"
    default_cycle_length: int = 28
    default_period_length: int = 5
    prediction: PredictionConfig = field(default_factory=PredictionConfig)
    limits: CycleLimits = field(default_factory=CycleLimits)
    recent_entries: int = 5
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when tracker_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Tracker config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> TrackerConfig:
    """Validate the raw YAML dict and construct a TrackerConfig.

    Missing sections fall back to defaults; every problem found is reported
    in a single ConfigValidationError.
    """
    errors: list[str] = []

    def _int(section: dict, key: str, default: int, path: str, minimum: int = 0) -> int:
        value = section.get(key, default)
        try:
            number = int(value)
        except (TypeError, ValueError):
            errors.append(f"{path}.{key} must be an integer, got {value!r}")
            return default
        if isinstance(value, float) and value != number:
            errors.append(f"{path}.{key} must be a whole number, got {value!r}")
        if number < minimum:
            errors.append(f"{path}.{key} = {number} is below the minimum of {minimum}")
        return number

    def _section(name: str) -> dict[str, Any]:
        section = raw.get(name) or {}
        if not isinstance(section, dict):
            errors.append(f"'{name}' must be a mapping")
            return {}
        return section

    version = str(raw.get("version", "1.0"))

    # ── Prediction ──
    pr_raw = _section("prediction")
    prediction = PredictionConfig(
        luteal_phase_days=_int(pr_raw, "luteal_phase_days", 14, "prediction", 1),
        fertile_days_before=_int(pr_raw, "fertile_days_before", 5, "prediction"),
        fertile_days_after=_int(pr_raw, "fertile_days_after", 1, "prediction"),
    )

    # ── Limits ──
    cl_raw = _section("cycle_length")
    pl_raw = _section("period_length")
    limits = CycleLimits(
        min_cycle_days=_int(cl_raw, "min_days", 15, "cycle_length", 1),
        max_cycle_days=_int(cl_raw, "max_days", 90, "cycle_length", 1),
        typical_min_days=_int(cl_raw, "typical_min_days", 21, "cycle_length", 1),
        typical_max_days=_int(cl_raw, "typical_max_days", 45, "cycle_length", 1),
        min_period_days=_int(pl_raw, "min_days", 1, "period_length", 1),
        max_period_days=_int(pl_raw, "max_days", 15, "period_length", 1),
    )
    if limits.min_cycle_days > limits.max_cycle_days:
        errors.append("cycle_length.min_days must not exceed cycle_length.max_days")
    if limits.min_period_days > limits.max_period_days:
        errors.append("period_length.min_days must not exceed period_length.max_days")
    if limits.min_cycle_days <= prediction.luteal_phase_days:
        errors.append(
            "cycle_length.min_days must be greater than prediction.luteal_phase_days "
            "so ovulation falls after the period start"
        )

    # ── Defaults ──
    df_raw = _section("defaults")
    default_cycle = _int(df_raw, "cycle_length", 28, "defaults", 1)
    default_period = _int(df_raw, "period_length", 5, "defaults", 1)
    if not (limits.min_cycle_days <= default_cycle <= limits.max_cycle_days):
        errors.append(f"defaults.cycle_length = {default_cycle} is outside cycle_length limits")
    if not (limits.min_period_days <= default_period <= limits.max_period_days):
        errors.append(f"defaults.period_length = {default_period} is outside period_length limits")

    recent = _int(_section("display"), "recent_entries", 5, "display", 1)

    if errors:
        raise ConfigValidationError(
            f"tracker_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return TrackerConfig(
        version=version,
        default_cycle_length=default_cycle,
        default_period_length=default_period,
        prediction=prediction,
        limits=limits,
        recent_entries=recent,
        _raw=raw,
    )


def load_tracker_config(path: Path | None = None) -> TrackerConfig:
    """Load and validate the tracker config from disk.

    Args:
        path: Override path to YAML. Uses the bundled tracker_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    config = _validate_and_build(_load_yaml(target))
    logger.info("Loaded tracker config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: TrackerConfig | None = None
_config_lock = threading.Lock()


def get_tracker_config() -> TrackerConfig:
    """Return the global TrackerConfig, loading it on first call. Thread-safe."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_tracker_config()
    return _config


def reload_tracker_config(path: Path | None = None) -> TrackerConfig:
    """Reload the config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_tracker_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded tracker config: %s → %s", old_version, new_config.version)
    return new_config

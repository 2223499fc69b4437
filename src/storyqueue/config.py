"""
Engine configuration persistence.

Tuning knobs for queue capacity, dice ranges and background pacing,
stored in a JSON file. Missing keys fall back to defaults.
"""

import json
import logging
from pathlib import Path
from typing import TypedDict

logger = logging.getLogger(__name__)


class EngineConfig(TypedDict, total=False):
    """Engine configuration."""
    optional_capacity: int  # Max optional events queued at once
    roll_min: int  # Inclusive die range for checks
    roll_max: int
    critical_success_band: int  # Top N% of the die is a critical
    critical_failure_band: int  # Bottom N% is a critical failure
    max_background_per_week: int  # Background events auto-resolved per week
    known_stats: list[str] | None  # When set, other stat names are dropped
    defer_overflow_weeks: int  # How far a bumped event is pushed back


DEFAULT_CONFIG: EngineConfig = {
    "optional_capacity": 5,
    "roll_min": 1,
    "roll_max": 100,
    "critical_success_band": 5,
    "critical_failure_band": 5,
    "max_background_per_week": 2,
    "known_stats": None,
    "defer_overflow_weeks": 1,
}

CONFIG_FILENAME = ".storyqueue.json"


def get_config_path(base_dir: Path | str = ".") -> Path:
    """Get path to config file."""
    return Path(base_dir) / CONFIG_FILENAME


def make_config(**overrides) -> EngineConfig:
    """Defaults with selected keys replaced."""
    config = DEFAULT_CONFIG.copy()
    config.update(overrides)  # type: ignore[typeddict-item]
    return config


def load_config(path: Path | str | None = None) -> EngineConfig:
    """Load config from file, or return defaults if not found."""
    path = Path(path) if path is not None else get_config_path()

    if not path.exists():
        return DEFAULT_CONFIG.copy()

    try:
        with open(path, "r", encoding="utf-8") as f:
            saved = json.load(f)
        # Merge with defaults to handle missing keys
        config = DEFAULT_CONFIG.copy()
        config.update({k: v for k, v in saved.items() if k in DEFAULT_CONFIG})
        return config
    except (json.JSONDecodeError, IOError, AttributeError) as e:
        logger.warning(f"Ignoring unreadable config {path}: {e}")
        return DEFAULT_CONFIG.copy()


def save_config(config: EngineConfig, path: Path | str | None = None) -> bool:
    """Save config to file. Returns True on success."""
    path = Path(path) if path is not None else get_config_path()

    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except IOError:
        return False

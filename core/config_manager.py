"""
Configuration Manager for Momentum.

Central place for system constants and tunable parameters.
Every magic number of the planner lives here and can be overridden
from config/runtime.yaml.

Usage:
    from core.config_manager import config
    interval = config.TICK_INTERVAL_MS
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path

import yaml


CONFIG_DIR = Path(os.environ.get("MOMENTUM_CONFIG_DIR", Path(__file__).parent.parent / "config"))
RUNTIME_CONFIG_PATH = CONFIG_DIR / "runtime.yaml"


@dataclass
class SystemConfig:
    """
    Runtime constants.

    Values are defaults, adjust them in runtime.yaml.
    """

    # === Focus session ===

    # Timer check interval (ms); sub-second keeps the countdown display smooth
    TICK_INTERVAL_MS: int = 500

    # "Just 1 minute" escape hatch length
    QUICK_RESTART_SECONDS: int = 60

    # Emotion tag sent with a coaching request
    COACHING_EMOTION: str = "overwhelmed"

    # Placeholder shown while coaching is in flight
    COACHING_PLACEHOLDER: str = "Thinking..."

    # === Celebration ===

    # Dwell before moving on to the next task
    CELEBRATION_DWELL_NEXT_SECONDS: float = 2.5

    # Dwell before returning to the dashboard once the plan is done
    CELEBRATION_DWELL_DONE_SECONDS: float = 3.0

    # === Plan editor ===

    # Step used by the +/- time buttons (minutes)
    TIME_ADJUST_STEP: int = 5

    # === User defaults ===

    DEFAULT_USER_NAME: str = "Friend"
    DEFAULT_ENERGY: str = "medium"
    DEFAULT_STREAK: int = 4

    # === LLM ===

    # Extra attempts after a failed gateway call (0 = fail straight to fallback)
    LLM_MAX_RETRIES: int = 0

    # Structuring wants stable output, coaching can be warmer
    ORGANIZE_TEMPERATURE: float = 0.4
    COACHING_TEMPERATURE: float = 0.8
    LLM_MAX_TOKENS: int = 2048


def _load_runtime_config() -> dict:
    """Load runtime overrides if present."""
    if not RUNTIME_CONFIG_PATH.exists():
        return {}

    try:
        with open(RUNTIME_CONFIG_PATH, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        logging.getLogger("momentum.config").warning("Ignoring %s: %s", RUNTIME_CONFIG_PATH, e)
        return {}


def get_config() -> SystemConfig:
    """
    Build the system configuration.

    Precedence: runtime.yaml > defaults
    """
    base = SystemConfig()
    overrides = _load_runtime_config()

    for key, value in overrides.items():
        if hasattr(base, key):
            setattr(base, key, value)

    return base


config = get_config()

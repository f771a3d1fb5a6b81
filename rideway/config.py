"""
Settings for the maintenance engine.

Defaults live in DEFAULTS. A YAML settings file may override them, and
RIDEWAY_* environment variables override both:

    settings = load_settings("rideway.yaml")
    settings.mileage_dedup_window_seconds   # 60
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .errors import ValidationError

logger = logging.getLogger("rideway.config")

ENV_PREFIX = "RIDEWAY_"
UNIT_SYSTEMS = ("metric", "imperial")


@dataclass(frozen=True)
class Settings:
    """Tunable engine values."""

    mileage_dedup_window_seconds: int = 60
    sweep_interval_seconds: int = 3600
    due_soon_miles: int = 1000
    due_soon_days: int = 30
    allow_mileage_decrease: bool = False
    storage_units: str = "metric"
    display_units: str = "metric"
    log_level: str = "WARNING"

    def __post_init__(self):
        for name in (
            "mileage_dedup_window_seconds",
            "sweep_interval_seconds",
            "due_soon_miles",
            "due_soon_days",
        ):
            if getattr(self, name) < 0:
                raise ValidationError(f"{name} cannot be negative")
        for name in ("storage_units", "display_units"):
            if getattr(self, name) not in UNIT_SYSTEMS:
                raise ValidationError(
                    f"{name} must be one of {', '.join(UNIT_SYSTEMS)}"
                )


DEFAULTS = Settings()


def _coerce(name: str, raw: Any, default: Any) -> Any:
    """Convert a raw YAML/env value to the type of the default."""
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
        raise ValidationError(f"{name} must be a boolean, got {raw!r}")
    if isinstance(default, int):
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be an integer, got {raw!r}") from None
    return str(raw)


def _overrides(
    values: Mapping[str, Any], base: Settings, source: str
) -> Dict[str, Any]:
    known = {f.name for f in fields(Settings)}
    result = {}
    for key, raw in values.items():
        if key not in known:
            logger.warning("Ignoring unknown setting %r from %s", key, source)
            continue
        result[key] = _coerce(key, raw, getattr(base, key))
    return result


def load_settings(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build Settings from defaults, an optional YAML file and the environment."""
    settings = DEFAULTS

    if path is not None:
        with open(path, "r") as fp:
            data = yaml.load(fp, Loader=yaml.SafeLoader) or {}
        if not isinstance(data, dict):
            raise ValidationError(f"Settings file {path} must contain a mapping")
        settings = replace(settings, **_overrides(data, settings, str(path)))

    environ = os.environ if environ is None else environ
    from_env = {
        key[len(ENV_PREFIX):].lower(): value
        for key, value in environ.items()
        if key.startswith(ENV_PREFIX)
    }
    # RIDEWAY_USER, RIDEWAY_GARAGE and RIDEWAY_SETTINGS name inputs, not settings
    from_env.pop("user", None)
    from_env.pop("garage", None)
    from_env.pop("settings", None)
    if from_env:
        settings = replace(settings, **_overrides(from_env, settings, "environment"))

    logger.debug("Loaded settings: %s", settings)
    return settings

"""Load, validate, and hot-reload polling cadence profiles.

Profiles live in ``schedule_config.yaml`` alongside this module.  Each profile
names a polling interval and bin count for one class of monitoring device.
The file is loaded once and cached; call ``reload_schedule_config()`` to
re-read it after an update, no restart required.

Usage::

    from stagger.scheduling.config_loader import get_schedule_config
    from stagger.scheduling.generator import TaskGenerator

    profile = get_schedule_config().profile("cardiac_monitor")
    generator = TaskGenerator.from_profile(profile)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from pathlib import Path

import yaml

from stagger.scheduling.constants import (
    DEFAULT_BIN_COUNT,
    DEFAULT_INTERVAL_SECONDS,
    MAX_DISTRIBUTION_CV,
)

logger = logging.getLogger("stagger.scheduling.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "schedule_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CadenceProfile:
    """Polling cadence for one class of targets."""

    name: str
    interval_seconds: int
    bin_count: int
    description: str = ""
    max_cv: float = MAX_DISTRIBUTION_CV


@dataclass
class ScheduleConfig:
    """Complete, validated schedule configuration.

    Attributes:
        version:  Config schema version string.
        defaults: Profile used when no named profile applies.
        profiles: Profile name → CadenceProfile.
        max_cv:   Coefficient-of-variation threshold for distribution checks.
    """

    version: str
    defaults: CadenceProfile
    profiles: dict[str, CadenceProfile]
    max_cv: float = MAX_DISTRIBUTION_CV

    def profile(self, name: str) -> CadenceProfile:
        """Return a named profile.

        Raises:
            KeyError: If no profile with that name is configured.
        """
        try:
            return self.profiles[name]
        except KeyError:
            raise KeyError(
                f"Unknown cadence profile '{name}'. "
                f"Configured: {', '.join(sorted(self.profiles)) or 'none'}"
            ) from None

    def profile_or_default(self, name: str | None) -> CadenceProfile:
        """Return the named profile, or the defaults when unnamed/unknown."""
        if name and name in self.profiles:
            return self.profiles[name]
        return self.defaults


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when schedule_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Schedule config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigValidationError(f"{path} must contain a mapping at the top level")
    return data


def _positive_int(value: object, where: str, errors: list[str]) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        errors.append(f"{where} must be an integer, got {value!r}")
        return None
    if value <= 0:
        errors.append(f"{where} must be positive, got {value}")
        return None
    return value


def _build_profile(
    name: str, raw: object, where: str, errors: list[str]
) -> CadenceProfile | None:
    if not isinstance(raw, dict):
        errors.append(f"{where} must be a mapping")
        return None

    interval = _positive_int(
        raw.get("interval_seconds", DEFAULT_INTERVAL_SECONDS),
        f"{where}.interval_seconds",
        errors,
    )
    # One-second bins unless stated otherwise
    bins = _positive_int(
        raw.get("bin_count", interval if interval is not None else DEFAULT_BIN_COUNT),
        f"{where}.bin_count",
        errors,
    )
    if interval is None or bins is None:
        return None
    if bins > interval:
        errors.append(
            f"{where}.bin_count ({bins}) cannot exceed interval_seconds ({interval})"
        )
        return None

    return CadenceProfile(
        name=name,
        interval_seconds=interval,
        bin_count=bins,
        description=str(raw.get("description", "")),
    )


def _validate_and_build(raw: dict) -> ScheduleConfig:
    """Validate the raw YAML dict and construct a ScheduleConfig.

    All problems are collected and reported together.

    Raises:
        ConfigValidationError: If any section is missing or invalid.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    # ── Defaults ──
    defaults = _build_profile("default", raw.get("defaults") or {}, "defaults", errors)

    # ── Profiles ──
    profiles_raw = raw.get("profiles", {})
    profiles: dict[str, CadenceProfile] = {}
    if not isinstance(profiles_raw, dict):
        errors.append("'profiles' must be a mapping of name → profile")
        profiles_raw = {}
    for name, cfg in profiles_raw.items():
        profile = _build_profile(str(name), cfg, f"profiles.{name}", errors)
        if profile is not None:
            profiles[profile.name] = profile

    # ── Distribution ──
    dist_raw = raw.get("distribution", {}) or {}
    max_cv = MAX_DISTRIBUTION_CV
    try:
        max_cv = float(dist_raw.get("max_cv", MAX_DISTRIBUTION_CV))
    except (TypeError, ValueError, AttributeError):
        errors.append(f"distribution.max_cv must be a number, got {dist_raw!r}")
    else:
        if max_cv <= 0:
            errors.append(f"distribution.max_cv must be positive, got {max_cv}")

    if errors:
        raise ConfigValidationError(
            f"schedule_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    # Every profile is judged against the file-wide threshold
    return ScheduleConfig(
        version=version,
        defaults=replace(defaults, max_cv=max_cv),
        profiles={name: replace(p, max_cv=max_cv) for name, p in profiles.items()},
        max_cv=max_cv,
    )


def load_schedule_config(path: Path | None = None) -> ScheduleConfig:
    """Load and validate the schedule config from disk.

    Args:
        path: Override path to YAML. Uses the bundled schedule_config.yaml by default.

    Returns:
        Validated ScheduleConfig instance.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info(
        "Loaded schedule config v%s from %s (%d profiles)",
        config.version,
        target,
        len(config.profiles),
    )
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: ScheduleConfig | None = None
_config_lock = threading.Lock()


def get_schedule_config() -> ScheduleConfig:
    """Return the global ScheduleConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_schedule_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_schedule_config(_settings_path())
    return _config


def _settings_path() -> Path | None:
    from stagger.config import get_settings

    override = get_settings().schedule_config_path
    return Path(override) if override else None


def reload_schedule_config(path: Path | None = None) -> ScheduleConfig:
    """Reload the schedule config and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_schedule_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info(
        "Reloaded schedule config: %s → %s",
        old_version,
        new_config.version,
    )
    return new_config

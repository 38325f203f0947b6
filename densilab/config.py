"""Engine settings: built-in defaults, an optional TOML/JSON file, then the store."""
from __future__ import annotations

import json
import logging
import pathlib
import tomllib
from dataclasses import asdict, dataclass, fields, replace
from typing import Any

from densilab.services.density_in_situ import DEFAULT_REAL_DENSITY_REF
from densilab.services.density_max_min import DEFAULT_GRAIN_DENSITY

LOGGER = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when configuration loading fails."""


@dataclass(frozen=True)
class EngineSettings:
    # Used when a max/min test carries no grain density of its own.
    grain_density: float = DEFAULT_GRAIN_DENSITY
    # Used when an in-situ test carries no real density reference.
    real_density_ref: float = DEFAULT_REAL_DENSITY_REF


SETTING_KEYS = tuple(f.name for f in fields(EngineSettings))


def load_config(path: str | pathlib.Path) -> dict[str, Any]:
    """Load a configuration file (TOML or JSON)."""
    path_obj = pathlib.Path(path)
    if not path_obj.exists():
        raise ConfigError(f"Config path does not exist: {path_obj}")

    suffix = path_obj.suffix.lower()
    if suffix == ".toml":
        with path_obj.open("rb") as handle:
            return tomllib.load(handle)
    if suffix == ".json":
        with path_obj.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    raise ConfigError(f"Unsupported config format: {path_obj.suffix}")


def apply_overrides(settings: EngineSettings, values: dict[str, Any], source: str) -> EngineSettings:
    updates: dict[str, float] = {}
    for key, raw in values.items():
        if key not in SETTING_KEYS:
            LOGGER.warning("Ignoring unknown setting %r from %s", key, source)
            continue
        updates[key] = parse_setting(key, raw)
    return replace(settings, **updates)


def parse_setting(key: str, raw: Any) -> float:
    if key not in SETTING_KEYS:
        raise ConfigError(f"Unknown setting: {key} (expected one of {', '.join(SETTING_KEYS)})")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Setting {key} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"Setting {key} must be > 0, got {value}")
    return value


def resolve_settings(config_path: str | pathlib.Path | None = None, stored: dict[str, Any] | None = None) -> EngineSettings:
    """Defaults, then the config file's [engine] table, then stored values."""
    settings = EngineSettings()
    if config_path:
        data = load_config(config_path)
        section = data.get("engine", data)
        if not isinstance(section, dict):
            raise ConfigError(f"[engine] in {config_path} must be a table")
        settings = apply_overrides(settings, section, str(config_path))
    if stored:
        known = {k: v for k, v in stored.items() if k in SETTING_KEYS}
        settings = apply_overrides(settings, known, "app_settings")
    return settings


def settings_payload(settings: EngineSettings) -> dict[str, float]:
    return asdict(settings)

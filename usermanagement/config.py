"""Configuration management for the user management service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

from .seed import DEFAULT_MAX_ATTEMPTS, DEFAULT_SEED_URL, DEFAULT_TIMEOUT

ENV_PREFIX = "USER_MANAGEMENT_"
CONFIG_PATH_ENV = f"{ENV_PREFIX}CONFIG"
DEFAULT_CORS_ORIGINS: Tuple[str, ...] = ("http://localhost:4200",)
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class ConfigurationError(RuntimeError):
    """Raised when the service configuration is invalid."""


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API and the startup seeding step."""

    seed_url: str = DEFAULT_SEED_URL
    seed_timeout: float = DEFAULT_TIMEOUT
    seed_max_attempts: int = DEFAULT_MAX_ATTEMPTS
    seed_on_startup: bool = True
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS
    log_level: str = "INFO"

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "Settings":
        """Create :class:`Settings` from raw dictionary data, such as a YAML document."""

        unknown = set(data.keys()) - _FIELD_PARSERS.keys()
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(sorted(str(key) for key in unknown))}"
            )
        values = {key: _FIELD_PARSERS[key](key, value) for key, value in data.items()}
        return replace(Settings(), **values)


def _parse_str(name: str, value: object) -> str:
    text = str(value).strip()
    if not text:
        raise ConfigurationError(f"Setting {name!r} must not be empty")
    return text


def _parse_float(name: str, value: object) -> float:
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid number {value!r} for setting {name!r}") from exc
    if parsed <= 0:
        raise ConfigurationError(f"Setting {name!r} must be positive")
    return parsed


def _parse_int(name: str, value: object) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid integer {value!r} for setting {name!r}")
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid integer {value!r} for setting {name!r}") from exc
    if parsed < 1:
        raise ConfigurationError(f"Setting {name!r} must be at least 1")
    return parsed


def _parse_bool(name: str, value: object) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ConfigurationError(f"Invalid boolean {value!r} for setting {name!r}")


def _parse_origins(name: str, value: object) -> Tuple[str, ...]:
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        raise ConfigurationError(f"Setting {name!r} must be a list or comma-separated string")
    return tuple(item.strip() for item in items if item.strip())


def _parse_log_level(name: str, value: object) -> str:
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError(f"Unknown log level {value!r} for setting {name!r}")
    return level


_FIELD_PARSERS = {
    "seed_url": _parse_str,
    "seed_timeout": _parse_float,
    "seed_max_attempts": _parse_int,
    "seed_on_startup": _parse_bool,
    "cors_origins": _parse_origins,
    "log_level": _parse_log_level,
}


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "settings.yaml").resolve(strict=False)


def _read_config_file(config_path: Path) -> Dict[str, object]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
    return raw


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    for key in _FIELD_PARSERS:
        value = environ.get(ENV_PREFIX + key.upper())
        if value is not None and value.strip() != "":
            overrides[key] = value
    return overrides


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from the YAML file (if any), then apply environment overrides.

    An explicitly requested file, via ``config_path`` or the
    ``USER_MANAGEMENT_CONFIG`` variable, must exist. The default location is
    optional.
    """
    env = os.environ if environ is None else environ

    explicit = config_path is not None or bool(env.get(CONFIG_PATH_ENV))
    path = config_path or resolve_config_path(env.get(CONFIG_PATH_ENV))

    data: Dict[str, object] = {}
    if path.is_file():
        data.update(_read_config_file(path))
    elif explicit:
        raise ConfigurationError(f"Configuration file not found: {path}")

    data.update(_env_overrides(env))
    return Settings.from_dict(data)


__all__ = [
    "ConfigurationError",
    "Settings",
    "load_settings",
    "resolve_config_path",
]

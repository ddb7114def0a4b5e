"""
Sync Settings Loader (``treasury_config.settings``).

Responsibility
--------------
Loads the deployment settings of the scheduled sync job from a YAML file
into a frozen ``SyncSettings``.  Every key may be overridden by an
environment variable named ``TREASURY_<KEY>`` (upper case), which is how
secrets such as the database URL are injected in production.

Precedence: defaults < YAML file < environment.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key, wrong type or out-of-range value  -> ``ValueError``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

ENV_PREFIX = "TREASURY_"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class SyncSettings:
    database_url: str = "sqlite:///treasury.db"
    ponto_api_url: str = "https://api.myponto.com"
    http_timeout_seconds: float = 30.0
    token_expiry_margin_seconds: int = 30
    run_deadline_seconds: float | None = 600.0  # None: no deadline
    tick_interval_seconds: float = 300.0
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        if not self.ponto_api_url.startswith(("http://", "https://")):
            raise ValueError(f"ponto_api_url must be an http(s) URL: {self.ponto_api_url!r}")
        if self.http_timeout_seconds <= 0:
            raise ValueError("http_timeout_seconds must be positive")
        if self.token_expiry_margin_seconds < 0:
            raise ValueError("token_expiry_margin_seconds must be non-negative")
        if self.run_deadline_seconds is not None and self.run_deadline_seconds <= 0:
            raise ValueError("run_deadline_seconds must be positive")
        if self.tick_interval_seconds <= 0:
            raise ValueError("tick_interval_seconds must be positive")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Unknown log_level {self.log_level!r}")


_CASTS = {
    "database_url": str,
    "ponto_api_url": str,
    "http_timeout_seconds": float,
    "token_expiry_margin_seconds": int,
    "run_deadline_seconds": float,
    "tick_interval_seconds": float,
    "log_level": str,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML mapping (empty file -> empty dict)."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def settings_from_dict(
    data: Mapping[str, Any], environ: Mapping[str, str] | None = None,
) -> SyncSettings:
    """Build settings from a raw mapping plus ``TREASURY_*`` overrides."""
    environ = os.environ if environ is None else environ

    known = {f.name for f in fields(SyncSettings)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown settings keys: {sorted(unknown)}")

    values: dict[str, Any] = dict(data)
    for name in known:
        env_value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value is not None:
            values[name] = env_value

    return SyncSettings(**{k: _cast(k, v) for k, v in values.items()})


def load_settings(
    path: str | Path | None = None, environ: Mapping[str, str] | None = None,
) -> SyncSettings:
    """Load settings from ``path`` (optional) and the environment."""
    data = load_yaml_file(Path(path)) if path is not None else {}
    return settings_from_dict(data, environ)


def _cast(name: str, value: Any) -> Any:
    if name == "run_deadline_seconds" and (
        value is None or str(value).strip().lower() in ("", "none")
    ):
        return None
    if value is None or isinstance(value, bool):
        raise ValueError(f"Setting {name!r} has invalid value {value!r}")
    try:
        cast = _CASTS[name](value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Setting {name!r} has invalid value {value!r}") from exc
    return cast.upper() if name == "log_level" else cast

"""Configuration management for the task management service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

from .database import resolve_database_path

DEFAULT_TOKEN_TTL_HOURS = 24 * 30


def _split_origins(value: object) -> Tuple[str, ...]:
    if value is None:
        return ("*",)
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(item) for item in value]  # type: ignore[union-attr]
    origins = tuple(item.strip() for item in items if item.strip())
    return origins or ("*",)


@dataclass(frozen=True)
class Settings:
    """Runtime settings passed explicitly to every component."""

    database_path: Path
    secret_key: str
    token_ttl: timedelta = timedelta(hours=DEFAULT_TOKEN_TTL_HOURS)
    cors_origins: Tuple[str, ...] = ("*",)

    @staticmethod
    def from_dict(data: Dict[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""
        secret = data.get("secret_key")
        if not secret:
            raise ValueError("A secret_key must be configured to sign access tokens")

        raw_db_path = data.get("database_path")
        if raw_db_path:
            db_path = Path(str(raw_db_path)).expanduser()
            if not db_path.is_absolute() and base_path is not None:
                db_path = base_path / db_path
            database_path = db_path.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        ttl_hours = float(data.get("token_ttl_hours", DEFAULT_TOKEN_TTL_HOURS))  # type: ignore[arg-type]
        if ttl_hours <= 0:
            raise ValueError("token_ttl_hours must be positive")

        return Settings(
            database_path=database_path,
            secret_key=str(secret),
            token_ttl=timedelta(hours=ttl_hours),
            cors_origins=_split_origins(data.get("cors_origins")),
        )


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "settings.yaml").resolve(strict=False)
    return candidate


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from a YAML file, then apply environment overrides."""
    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("TASKS_CONFIG"))

    raw: Dict[str, object] = {}
    base_path: Path | None = None
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        raw.update(loaded)
        base_path = path.parent
    elif config_path is not None:
        raise FileNotFoundError(f"Configuration file {path} does not exist")

    overrides = {
        "database_path": env.get("TASKS_DB_PATH"),
        "secret_key": env.get("TASKS_SECRET_KEY"),
        "token_ttl_hours": env.get("TASKS_TOKEN_TTL_HOURS"),
        "cors_origins": env.get("TASKS_FRONTEND_URL"),
    }
    for key, value in overrides.items():
        if value:
            raw[key] = value

    if overrides["database_path"]:
        raw["database_path"] = str(resolve_database_path(overrides["database_path"]))

    return Settings.from_dict(raw, base_path=base_path)


__all__ = ["Settings", "load_settings", "resolve_config_path"]

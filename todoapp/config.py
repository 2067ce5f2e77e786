"""Configuration management for the to-do service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

import yaml

from .database import resolve_database_path
from .sessions import DEFAULT_TOKEN_TTL

DEFAULT_CORS_ORIGINS: Tuple[str, ...] = ("http://localhost:3000",)


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API and its startup tasks."""

    database_path: Path
    token_secret: Optional[str] = None
    token_ttl: timedelta = DEFAULT_TOKEN_TTL
    demo_enabled: bool = True
    demo_username: str = "demo"
    demo_email: str = "demo@example.com"
    demo_password: str = "demo123"
    cors_origins: Tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from a parsed YAML document."""

        raw_db_path = data.get("database_path")
        if raw_db_path:
            candidate = Path(str(raw_db_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        ttl = DEFAULT_TOKEN_TTL
        if data.get("token_ttl_hours") is not None:
            ttl = timedelta(hours=_parse_int(data["token_ttl_hours"], "token_ttl_hours"))

        demo = data.get("demo") or {}
        if not isinstance(demo, Mapping):
            raise ValueError("The 'demo' configuration section must be a mapping")

        origins = data.get("cors_origins")
        if origins is None:
            cors_origins = DEFAULT_CORS_ORIGINS
        elif isinstance(origins, str):
            cors_origins = _split_origins(origins)
        else:
            cors_origins = tuple(str(origin).strip() for origin in origins if str(origin).strip())

        secret = data.get("token_secret")
        return Settings(
            database_path=database_path,
            token_secret=str(secret) if secret else None,
            token_ttl=ttl,
            demo_enabled=bool(demo.get("enabled", True)),
            demo_username=str(demo.get("username", "demo")),
            demo_email=str(demo.get("email", "demo@example.com")),
            demo_password=str(demo.get("password", "demo123")),
            cors_origins=cors_origins,
        )

    def with_env(self, environ: Mapping[str, str]) -> "Settings":
        """Return a copy with ``TODO_*`` environment overrides applied."""

        overrides: Dict[str, object] = {}
        if environ.get("TODO_DB_PATH"):
            overrides["database_path"] = resolve_database_path(environ["TODO_DB_PATH"])
        if environ.get("TODO_TOKEN_SECRET"):
            overrides["token_secret"] = environ["TODO_TOKEN_SECRET"]
        if environ.get("TODO_TOKEN_TTL_HOURS"):
            overrides["token_ttl"] = timedelta(
                hours=_parse_int(environ["TODO_TOKEN_TTL_HOURS"], "TODO_TOKEN_TTL_HOURS")
            )
        if environ.get("TODO_DEMO_ENABLED") is not None:
            overrides["demo_enabled"] = _env_flag(environ["TODO_DEMO_ENABLED"], self.demo_enabled)
        for key, attr in (
            ("TODO_DEMO_USERNAME", "demo_username"),
            ("TODO_DEMO_EMAIL", "demo_email"),
            ("TODO_DEMO_PASSWORD", "demo_password"),
        ):
            if environ.get(key):
                overrides[attr] = environ[key]
        if environ.get("TODO_CORS_ORIGINS") is not None:
            overrides["cors_origins"] = _split_origins(environ["TODO_CORS_ORIGINS"])
        return replace(self, **overrides)


def _parse_int(value: object, name: str) -> int:
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid integer value {value!r} for {name}") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be positive")
    return parsed


def _env_flag(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _split_origins(raw: str) -> Tuple[str, ...]:
    origins: List[str] = [origin.strip().rstrip("/") for origin in raw.split(",")]
    return tuple(origin for origin in origins if origin)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "todo.yaml").resolve(strict=False)


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from YAML (when present) and the environment."""
    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("TODO_CONFIG_PATH"))

    raw: object = {}
    if path.is_file():
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    return Settings.from_dict(raw, base_path=path.parent).with_env(env)


__all__ = ["DEFAULT_CORS_ORIGINS", "Settings", "load_settings", "resolve_config_path"]

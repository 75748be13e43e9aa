"""Utilities for loading application settings from YAML configuration files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy.engine import URL


@dataclass(slots=True)
class DatabaseSettings:
    host: str = "localhost"
    port: int = 5432
    name: str = "cantina_escolar"
    user: str = "postgres"
    password_env: str | None = None
    url_env: str | None = None
    connect_timeout_s: float = 3.0

    def resolve_url(self) -> str:
        """Return the SQLAlchemy URL for the configured backend.

        A full URL in the environment variable named by ``url_env`` wins over
        the individual connection fields.
        """

        if self.url_env:
            value = os.getenv(self.url_env)
            if value:
                return value
        password = os.getenv(self.password_env) if self.password_env else None
        url = URL.create(
            "postgresql+psycopg2",
            username=self.user or None,
            password=password or None,
            host=self.host or None,
            port=self.port or None,
            database=self.name or None,
        )
        return url.render_as_string(hide_password=False)


@dataclass(slots=True)
class FallbackSettings:
    seed_path: str | None = None

    def candidate_paths(self, repo_root: Path) -> list[Path]:
        """Return the seed script locations to try, in priority order."""

        candidates: list[Path] = []
        if self.seed_path:
            configured = Path(self.seed_path).expanduser()
            if not configured.is_absolute():
                configured = repo_root / configured
            candidates.append(configured)
        candidates.append(repo_root / "assets" / "seed" / "cantina_escolar.sql")
        candidates.append(Path.cwd() / "cantina_escolar.sql")
        return candidates


@dataclass(slots=True)
class PathsSettings:
    data_logs_dir: str | None = None


@dataclass(slots=True)
class Settings:
    database: DatabaseSettings
    fallback: FallbackSettings
    paths: PathsSettings | None = None
    app_name: str = "Cantina Escolar"


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def load_settings(path: str | Path) -> Settings:
    """Read configuration from *path* and return structured settings."""

    config_path = Path(path)
    raw = _load_yaml(config_path)

    db_raw = raw.get("database", {}) or {}
    database = DatabaseSettings(
        host=str(db_raw.get("host", "localhost")),
        port=int(db_raw.get("port", 5432)),
        name=str(db_raw.get("name", "cantina_escolar")),
        user=str(db_raw.get("user", "postgres")),
        password_env=str(db_raw["password_env"]) if db_raw.get("password_env") else None,
        url_env=str(db_raw["url_env"]) if db_raw.get("url_env") else None,
        connect_timeout_s=float(db_raw.get("connect_timeout_s", 3.0)),
    )

    fallback_raw = raw.get("fallback", {}) or {}
    seed_path = fallback_raw.get("seed_path")
    fallback = FallbackSettings(seed_path=str(seed_path) if seed_path else None)

    paths_raw: dict[str, Any] | None = raw.get("paths")
    paths = None
    if paths_raw:
        data_logs_dir = paths_raw.get("data_logs_dir")
        paths = PathsSettings(data_logs_dir=str(data_logs_dir) if data_logs_dir else None)

    return Settings(
        database=database,
        fallback=fallback,
        paths=paths,
        app_name=str(raw.get("app_name", "Cantina Escolar")),
    )

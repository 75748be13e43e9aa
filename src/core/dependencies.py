"""Factory helpers for constructing the data layer from settings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from src.core.config import Settings
from src.core.data_layer import DataLayer
from src.core.inventory import CanteenService
from src.core.observability import DataLayerObservationSink, JSONLDataLayerLogger
from src.integrations.postgres_executor import PostgresSQLExecutor

REPO_ROOT = Path(__file__).resolve().parents[2]


@dataclass(slots=True)
class AppDependencies:
    """Objects shared by every request of the web app."""

    data_layer: DataLayer
    service: CanteenService
    observer: DataLayerObservationSink


def build_dependencies(settings: Settings) -> AppDependencies:
    """Create dependency instances based on *settings*."""

    observer = JSONLDataLayerLogger(base_dir=_resolve_data_logs_dir(settings))
    data_layer = build_data_layer(settings, observer=observer)
    return AppDependencies(
        data_layer=data_layer,
        service=CanteenService(data=data_layer),
        observer=observer,
    )


def build_data_layer(
    settings: Settings,
    *,
    observer: DataLayerObservationSink | None = None,
) -> DataLayer:
    db = settings.database
    live = PostgresSQLExecutor(url=db.resolve_url(), connect_timeout_s=db.connect_timeout_s)
    return DataLayer(
        live=live,
        seed_candidates=settings.fallback.candidate_paths(REPO_ROOT),
        probe_timeout_s=db.connect_timeout_s,
        observer=observer,
    )


def _resolve_data_logs_dir(settings: Settings) -> Path:
    base = (
        settings.paths.data_logs_dir
        if settings.paths and settings.paths.data_logs_dir
        else "logs/data"
    )
    path = Path(base).expanduser()
    path.mkdir(parents=True, exist_ok=True)
    return path

"""Single entry point for every data access in the application.

``DataLayer`` decides once per process whether queries go to PostgreSQL or
to the in-memory emulation seeded from the bundled script. Callers only ever
see :meth:`DataLayer.query`; they cannot tell which backend answered.

The decision is taken by :meth:`DataLayer.initialize`, which the web app
awaits during startup. ``query`` awaits the same resolution, so a call that
arrives early waits for the probe instead of guessing a mode.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Sequence

from sqlalchemy.exc import SQLAlchemyError

from src.core.observability import PROBE_CHANNEL, DataLayerObservationSink
from src.integrations.fallback_sql_executor import FallbackSQLExecutor
from src.integrations.in_memory_store import InMemoryStore
from src.integrations.postgres_executor import PostgresSQLExecutor
from src.integrations.seed_parser import load_seed_file

LOGGER = logging.getLogger(__name__)


class DataMode(str, Enum):
    UNPROBED = "unprobed"
    LIVE = "live"
    FALLBACK_PENDING = "fallback_pending"
    FALLBACK_ACTIVE = "fallback_active"
    FALLBACK_UNAVAILABLE = "fallback_unavailable"


RESOLVED_MODES = frozenset({DataMode.LIVE, DataMode.FALLBACK_ACTIVE, DataMode.FALLBACK_UNAVAILABLE})

_UNREACHABLE_ERRORS = (SQLAlchemyError, OSError, ImportError, TimeoutError)


@dataclass(slots=True)
class DataLayer:
    """Probe-once query facade over the live and fallback executors."""

    live: PostgresSQLExecutor
    seed_candidates: Sequence[Path]
    probe_timeout_s: float = 3.0
    observer: DataLayerObservationSink | None = None
    _mode: DataMode = field(init=False, default=DataMode.UNPROBED)
    _fallback: FallbackSQLExecutor | None = field(init=False, default=None)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    @property
    def mode(self) -> DataMode:
        return self._mode

    async def initialize(self) -> DataMode:
        """Resolve the operating mode; later calls return the cached decision."""

        if self._mode in RESOLVED_MODES:
            return self._mode
        async with self._lock:
            if self._mode in RESOLVED_MODES:
                return self._mode
            try:
                await asyncio.wait_for(asyncio.to_thread(self.live.ping), self.probe_timeout_s)
            except _UNREACHABLE_ERRORS as exc:
                LOGGER.warning(
                    "Database unreachable (%s: %s); switching to in-memory fallback",
                    type(exc).__name__,
                    exc,
                )
                self._activate_fallback(reason=type(exc).__name__)
            else:
                LOGGER.info("Database reachable; serving queries from the live backend")
                self._mode = DataMode.LIVE
                self._emit("probe_resolved", {"mode": self._mode.value})
        return self._mode

    def _activate_fallback(self, *, reason: str) -> None:
        self._mode = DataMode.FALLBACK_PENDING
        seed_path = next((path for path in self.seed_candidates if path.is_file()), None)
        if seed_path is None:
            LOGGER.warning(
                "No seed script found in %s; every query will return no rows",
                ", ".join(str(path) for path in self.seed_candidates),
            )
            self._resolve_unavailable(reason=reason, detail="seed_missing")
            return

        try:
            seed = load_seed_file(seed_path)
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Could not read seed script %s: %s", seed_path, exc)
            self._resolve_unavailable(reason=reason, detail="seed_unreadable", seed_path=seed_path)
            return

        if seed.total_rows == 0:
            LOGGER.warning("Seed script %s produced no rows; every query will return no rows", seed_path)
            self._resolve_unavailable(reason=reason, detail="seed_unparseable", seed_path=seed_path)
            return

        store = InMemoryStore.from_seed(seed)
        self._fallback = FallbackSQLExecutor(store=store, observer=self.observer)
        self._mode = DataMode.FALLBACK_ACTIVE
        LOGGER.info(
            "In-memory fallback active from %s (%s)",
            seed_path,
            ", ".join(f"{table}={count}" for table, count in seed.row_counts().items()),
        )
        self._emit(
            "probe_resolved",
            {
                "mode": self._mode.value,
                "reason": reason,
                "seed_path": str(seed_path),
                "rows": seed.row_counts(),
                "skipped_statements": len(seed.skipped),
            },
        )

    def _resolve_unavailable(self, *, reason: str, detail: str, seed_path: Path | None = None) -> None:
        self._mode = DataMode.FALLBACK_UNAVAILABLE
        self._emit(
            "probe_resolved",
            {
                "mode": self._mode.value,
                "reason": reason,
                "detail": detail,
                "seed_path": str(seed_path) if seed_path else None,
            },
        )

    def _emit(self, event: str, payload: dict[str, Any]) -> None:
        if self.observer is not None:
            self.observer.log_event(PROBE_CHANNEL, event, payload)

    async def query(self, statement: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run *statement* with positional *params* and return its rows."""

        mode = await self.initialize()
        if mode is DataMode.LIVE:
            return await asyncio.to_thread(self.live.run, statement, list(params))
        if mode is DataMode.FALLBACK_ACTIVE and self._fallback is not None:
            return self._fallback.run(statement, params)
        return []

    async def close(self) -> None:
        self.live.dispose()

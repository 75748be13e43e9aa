"""Event sinks for the data layer's probe and fallback executor."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from src.core.logging_utils import ChannelFiles, utc_now_iso

PROBE_CHANNEL = "probe"
QUERY_CHANNEL = "fallback-queries"


class DataLayerObservationSink(Protocol):
    """Receives ``probe_resolved`` and ``query_unrecognized`` events."""

    def log_event(self, channel: str, event: str, payload: dict[str, Any]) -> None:  # pragma: no cover - interface
        ...


def build_event_record(event: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Stamp *payload* with the event name and time; ``None`` values are dropped."""

    record: dict[str, Any] = {"event": event, "timestamp": utc_now_iso()}
    record.update((key, value) for key, value in payload.items() if value is not None)
    return record


@dataclass(slots=True)
class JSONLDataLayerLogger(DataLayerObservationSink):
    """Appends one JSON line per event to ``<base_dir>/<slug>-<channel>.jsonl``."""

    base_dir: Path
    _files: ChannelFiles = field(init=False)
    _write_lock: threading.Lock = field(init=False, default_factory=threading.Lock)

    def __post_init__(self) -> None:
        self._files = ChannelFiles(base_dir=self.base_dir)

    def log_event(self, channel: str, event: str, payload: dict[str, Any]) -> None:  # type: ignore[override]
        line = json.dumps(build_event_record(event, payload), ensure_ascii=False, default=str)
        target = self._files.path_for(channel)
        with self._write_lock, target.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


class NullObservationSink(DataLayerObservationSink):
    def log_event(self, channel: str, event: str, payload: dict[str, Any]) -> None:  # type: ignore[override]
        return None

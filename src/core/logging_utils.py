"""Helpers for the timestamped JSONL files written by the data layer."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path


def utc_now_iso() -> str:
    """Return the current UTC time in ISO-8601 with millisecond precision."""

    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def file_slug(moment: datetime | None = None) -> str:
    """Sortable UTC slug used as the filename prefix."""

    return (moment or datetime.now(UTC)).strftime("%Y%m%dT%H%M%S%f")[:-3]


def sanitize_channel(channel: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9_-]+", "-", channel.strip())
    return cleaned or "events"


@dataclass(slots=True)
class ChannelFiles:
    """One JSONL file per channel under *base_dir*.

    The first event on a channel fixes its filename, so a process run writes
    ``<slug>-<channel>.jsonl`` once per channel and appends to it afterwards.
    """

    base_dir: Path
    _paths: dict[str, Path] = field(init=False, default_factory=dict)
    _lock: threading.Lock = field(init=False, default_factory=threading.Lock)

    def path_for(self, channel: str) -> Path:
        with self._lock:
            target = self._paths.get(channel)
            if target is None:
                directory = self.base_dir.expanduser()
                directory.mkdir(parents=True, exist_ok=True)
                target = directory / f"{file_slug()}-{sanitize_channel(channel)}.jsonl"
                self._paths[channel] = target
            return target

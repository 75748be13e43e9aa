"""Tests for JSONL observability sinks."""

from __future__ import annotations

import json
from pathlib import Path

from src.core.logging_utils import ChannelFiles, sanitize_channel
from src.core.observability import PROBE_CHANNEL, QUERY_CHANNEL, JSONLDataLayerLogger, NullObservationSink


def _load_events(path: Path) -> list[dict[str, object]]:
    with path.open("r", encoding="utf-8") as handle:
        return [json.loads(line) for line in handle]


def test_jsonl_logger_appends_events_per_channel(tmp_path: Path) -> None:
    logger = JSONLDataLayerLogger(base_dir=tmp_path)

    logger.log_event(PROBE_CHANNEL, "probe_resolved", {"mode": "fallback_active", "seed_path": None})
    logger.log_event(QUERY_CHANNEL, "query_unrecognized", {"statement": "select 1", "param_count": 0})
    logger.log_event(QUERY_CHANNEL, "query_unrecognized", {"statement": "select 2", "param_count": 1})

    probe_files = sorted(tmp_path.glob("*-probe.jsonl"))
    query_files = sorted(tmp_path.glob("*-fallback-queries.jsonl"))
    assert len(probe_files) == 1
    assert len(query_files) == 1

    probe_events = _load_events(probe_files[0])
    assert probe_events[0]["event"] == "probe_resolved"
    assert probe_events[0]["mode"] == "fallback_active"
    assert "seed_path" not in probe_events[0]
    assert "timestamp" in probe_events[0]

    query_events = _load_events(query_files[0])
    assert [event["statement"] for event in query_events] == ["select 1", "select 2"]


def test_jsonl_logger_serialises_paths(tmp_path: Path) -> None:
    logger = JSONLDataLayerLogger(base_dir=tmp_path)

    logger.log_event(PROBE_CHANNEL, "probe_resolved", {"seed_path": tmp_path / "seed.sql"})

    events = _load_events(next(tmp_path.glob("*-probe.jsonl")))
    assert events[0]["seed_path"] == str(tmp_path / "seed.sql")


def test_null_sink_writes_nothing(tmp_path: Path) -> None:
    NullObservationSink().log_event(PROBE_CHANNEL, "probe_resolved", {"mode": "live"})

    assert list(tmp_path.iterdir()) == []


def test_channel_files_are_stable_per_channel(tmp_path: Path) -> None:
    files = ChannelFiles(base_dir=tmp_path / "nested")

    first = files.path_for("fallback queries/v1")

    assert files.path_for("fallback queries/v1") == first
    assert first.parent.is_dir()
    assert first.name.endswith("-fallback-queries-v1.jsonl")
    assert sanitize_channel("  ") == "events"

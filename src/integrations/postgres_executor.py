"""SQLAlchemy-backed executor for the live PostgreSQL database."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Sequence

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

LOGGER = logging.getLogger(__name__)

_POSITIONAL_RE = re.compile(r"\$(\d+)")


def to_named_params(statement: str, params: Sequence[Any]) -> tuple[str, dict[str, Any]]:
    """Rewrite ``$n`` placeholders as ``:pn`` binds for :func:`sqlalchemy.text`.

    Quoted literals are left untouched so a ``$1`` inside a string stays text.
    """

    pieces: list[str] = []
    for index, chunk in enumerate(re.split(r"('(?:[^']|'')*')", statement)):
        if index % 2 == 1:
            pieces.append(chunk)
        else:
            pieces.append(_POSITIONAL_RE.sub(lambda m: f":p{m.group(1)}", chunk))
    bound = {f"p{number}": value for number, value in enumerate(params, start=1)}
    return "".join(pieces), bound


def _build_engine(url: str, connect_timeout_s: float) -> Engine:
    connect_args: dict[str, Any] = {}
    if url.startswith("postgresql"):
        connect_args["connect_timeout"] = max(1, int(round(connect_timeout_s)))
    return create_engine(url, pool_pre_ping=True, echo=False, connect_args=connect_args)


@dataclass(slots=True)
class PostgresSQLExecutor:
    """Run the application's statements against the configured backend."""

    url: str
    connect_timeout_s: float = 3.0
    _engine: Engine | None = field(init=False, default=None)

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = _build_engine(self.url, self.connect_timeout_s)
        return self._engine

    def ping(self) -> None:
        """Round-trip ``SELECT 1``; raises if the backend is unreachable."""

        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))

    def run(self, statement: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        sql, bound = to_named_params(statement, params)
        with self.engine.begin() as connection:
            result = connection.execute(text(sql), bound)
            if not result.returns_rows:
                return []
            return [dict(row._mapping) for row in result]

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

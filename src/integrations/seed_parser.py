"""Parser for the bundled batch-insert seed script.

The seed script is a sequence of statements shaped like::

    INSERT INTO produtos (id, id_estoque, nome, preco) VALUES
      (1, 1, 'Pão de queijo', 3.50),
      (2, 2, 'Suco de laranja', 5.00);

Only the four canteen tables are kept. Statements for other tables are
ignored, and a statement whose value tuples cannot be split cleanly is
skipped without aborting the rest of the script.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

LOGGER = logging.getLogger(__name__)

KNOWN_TABLES: tuple[str, ...] = ("funcionarios", "produtos", "estoque", "vendas")

_INSERT_HEAD_RE = re.compile(
    r"insert\s+into\s+(?P<table>[\w.\"]+)\s*\((?P<columns>[^)]*)\)\s*values\s*",
    flags=re.IGNORECASE,
)
_INT_RE = re.compile(r"^[+-]?\d+$")
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.\d*|\.\d+)(?:[eE][+-]?\d+)?$")


class MalformedTupleError(ValueError):
    """Raised when a VALUES list cannot be split respecting quotes."""


@dataclass(slots=True)
class SkippedStatement:
    table: str
    reason: str


@dataclass(slots=True)
class SeedParseResult:
    """Rows per known table, in statement and tuple order."""

    tables: dict[str, list[dict[str, Any]]] = field(
        default_factory=lambda: {name: [] for name in KNOWN_TABLES}
    )
    skipped: list[SkippedStatement] = field(default_factory=list)
    statements_seen: int = 0

    @property
    def total_rows(self) -> int:
        return sum(len(rows) for rows in self.tables.values())

    def row_counts(self) -> dict[str, int]:
        return {name: len(rows) for name, rows in self.tables.items()}


def coerce_scalar(token: str, *, quoted: bool) -> Any:
    """Return the typed value of a single VALUES field."""

    if quoted:
        return token
    text = token.strip()
    if text.lower() == "null":
        return None
    if _INT_RE.match(text):
        return int(text)
    if _DECIMAL_RE.match(text):
        return float(text)
    return text


def _split_fields(body: str) -> list[Any]:
    """Split the inside of one tuple into coerced values.

    Two states: outside a quoted literal, where commas delimit fields, and
    inside one, where a doubled quote is a literal quote and a single quote
    closes the literal.
    """

    values: list[Any] = []
    buffer: list[str] = []
    quoted = False
    in_quote = False
    index = 0
    length = len(body)

    while index < length:
        ch = body[index]
        if in_quote:
            if ch == "'":
                if index + 1 < length and body[index + 1] == "'":
                    buffer.append("'")
                    index += 2
                    continue
                in_quote = False
            else:
                buffer.append(ch)
        elif ch == "'":
            if quoted or "".join(buffer).strip():
                raise MalformedTupleError("quote in the middle of an unquoted field")
            buffer = []
            quoted = True
            in_quote = True
        elif ch == ",":
            values.append(coerce_scalar("".join(buffer), quoted=quoted))
            buffer = []
            quoted = False
        elif quoted:
            if not ch.isspace():
                raise MalformedTupleError("unexpected text after a quoted literal")
        else:
            buffer.append(ch)
        index += 1

    if in_quote:
        raise MalformedTupleError("unterminated string literal")
    values.append(coerce_scalar("".join(buffer), quoted=quoted))
    return values


def split_value_tuples(text: str, start: int = 0) -> tuple[list[list[Any]], int]:
    """Read ``(..), (..);`` from *text* at *start*.

    Returns the parsed tuples and the index just past the terminating
    semicolon (or the end of the text).
    """

    tuples: list[list[Any]] = []
    in_quote = False
    depth = 0
    tuple_start: int | None = None
    index = start
    length = len(text)

    while index < length:
        ch = text[index]
        if in_quote:
            if ch == "'":
                if index + 1 < length and text[index + 1] == "'":
                    index += 2
                    continue
                in_quote = False
        elif ch == "'":
            if depth == 0:
                raise MalformedTupleError("string literal outside a tuple")
            in_quote = True
        elif ch == "(":
            if depth == 0:
                tuple_start = index + 1
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise MalformedTupleError("unbalanced closing parenthesis")
            if depth == 0 and tuple_start is not None:
                tuples.append(_split_fields(text[tuple_start:index]))
                tuple_start = None
        elif ch == ";" and depth == 0:
            return tuples, index + 1
        elif depth == 0 and not (ch.isspace() or ch == ","):
            raise MalformedTupleError(f"unexpected character {ch!r} between tuples")
        index += 1

    if in_quote:
        raise MalformedTupleError("unterminated string literal")
    if depth != 0:
        raise MalformedTupleError("unbalanced opening parenthesis")
    return tuples, length


def _skip(result: SeedParseResult, table: str, reason: str) -> None:
    LOGGER.warning("Skipping malformed INSERT into %s: %s", table, reason)
    result.skipped.append(SkippedStatement(table=table, reason=reason))


def _normalize_table(raw: str) -> str:
    name = raw.replace('"', "").lower()
    return name.rsplit(".", 1)[-1]


def parse_seed_script(text: str) -> SeedParseResult:
    """Extract typed rows for every known table from a batch-insert script."""

    result = SeedParseResult()
    position = 0
    while True:
        match = _INSERT_HEAD_RE.search(text, position)
        if match is None:
            break
        result.statements_seen += 1
        table = _normalize_table(match.group("table"))
        columns = [column.strip().strip('"').lower() for column in match.group("columns").split(",")]

        try:
            tuples, position = split_value_tuples(text, match.end())
        except MalformedTupleError as exc:
            # Resume at the next INSERT head; the rest of this statement is unusable.
            _skip(result, table, str(exc))
            position = match.end()
            continue

        mismatched = next((values for values in tuples if len(values) != len(columns)), None)
        if mismatched is not None:
            _skip(result, table, f"expected {len(columns)} values, found {len(mismatched)}")
            continue

        if table not in result.tables:
            LOGGER.debug("Ignoring seed rows for unknown table %s", table)
            continue
        result.tables[table].extend(dict(zip(columns, values)) for values in tuples)

    return result


def load_seed_file(path: str | Path) -> SeedParseResult:
    """Read and parse the seed script at *path*."""

    seed_path = Path(path).expanduser()
    if not seed_path.exists():
        raise FileNotFoundError(f"Seed script not found: {seed_path}")
    text = seed_path.read_text(encoding="utf-8")
    return parse_seed_script(text)

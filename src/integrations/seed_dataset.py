"""Utilities for inspecting the seed script used by the in-memory fallback."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.integrations.seed_parser import SeedParseResult, load_seed_file


@dataclass(slots=True)
class SeedDatasetInspector:
    """Loads high-level metadata for a seed script."""

    path: Path
    max_preview_rows: int = 3
    _result: SeedParseResult | None = field(init=False, default=None)

    def load(self) -> SeedParseResult:
        """Parse the script once and cache the result."""

        if self._result is None:
            self._result = load_seed_file(self.path)
        return self._result

    def describe(self) -> dict[str, Any]:
        """Return a structured summary of the seed script."""

        result = self.load()
        tables: dict[str, Any] = {}
        for name, rows in result.tables.items():
            columns: list[str] = []
            for row in rows:
                for column in row:
                    if column not in columns:
                        columns.append(column)
            tables[name] = {
                "row_count": len(rows),
                "columns": columns,
                "preview_rows": rows[: self.max_preview_rows],
            }
        return {
            "path": str(self.path),
            "statements": result.statements_seen,
            "total_rows": result.total_rows,
            "skipped": [{"table": item.table, "reason": item.reason} for item in result.skipped],
            "tables": tables,
        }


def _build_cli() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect the fallback seed script")
    parser.add_argument("path", type=Path, help="Path to the seed SQL file")
    parser.add_argument(
        "--max-preview-rows",
        type=int,
        default=3,
        help="Number of rows per table to include in the preview output",
    )
    return parser


def main() -> None:
    parser = _build_cli()
    args = parser.parse_args()
    inspector = SeedDatasetInspector(path=args.path, max_preview_rows=args.max_preview_rows)
    summary = inspector.describe()
    print(summary)


if __name__ == "__main__":
    main()

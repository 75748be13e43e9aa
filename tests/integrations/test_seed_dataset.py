"""Tests for the seed script inspector."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.integrations.seed_dataset import SeedDatasetInspector


def test_describe_summarises_tables(tmp_path: Path) -> None:
    seed_path = tmp_path / "seed.sql"
    seed_path.write_text(
        """
        INSERT INTO produtos (id, id_estoque, nome, preco) VALUES
          (1, 1, 'Suco', 5.00), (2, 2, 'Coxinha', 6.00), (3, 3, 'Bolo', 4.50);
        INSERT INTO vendas (id_funcionario, id_produto, quantidade, preco_total) VALUES
          (1, 2, 3, 'oops');
        INSERT INTO estoque (id_produto, quantidade) VALUES (1);
        """,
        encoding="utf-8",
    )

    summary = SeedDatasetInspector(path=seed_path, max_preview_rows=2).describe()

    assert summary["statements"] == 3
    assert summary["total_rows"] == 4
    assert summary["skipped"] == [{"table": "estoque", "reason": "expected 2 values, found 1"}]
    produtos = summary["tables"]["produtos"]
    assert produtos["row_count"] == 3
    assert produtos["columns"] == ["id", "id_estoque", "nome", "preco"]
    assert [row["nome"] for row in produtos["preview_rows"]] == ["Suco", "Coxinha"]
    assert summary["tables"]["funcionarios"] == {"row_count": 0, "columns": [], "preview_rows": []}


def test_load_is_cached(tmp_path: Path) -> None:
    seed_path = tmp_path / "seed.sql"
    seed_path.write_text("INSERT INTO estoque (id_produto, quantidade) VALUES (1, 2);", encoding="utf-8")
    inspector = SeedDatasetInspector(path=seed_path)

    first = inspector.load()
    seed_path.unlink()

    assert inspector.load() is first


def test_missing_seed_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        SeedDatasetInspector(path=tmp_path / "absent.sql").describe()

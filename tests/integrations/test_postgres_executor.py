"""Tests for the SQLAlchemy-backed live executor."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError

from src.integrations.postgres_executor import PostgresSQLExecutor, to_named_params


def test_positional_placeholders_become_named_binds() -> None:
    sql, bound = to_named_params("UPDATE produtos SET nome=$1, preco=$2 WHERE id=$3", ["Suco", 5.0, 2])

    assert sql == "UPDATE produtos SET nome=:p1, preco=:p2 WHERE id=:p3"
    assert bound == {"p1": "Suco", "p2": 5.0, "p3": 2}


def test_placeholders_inside_literals_are_left_alone() -> None:
    sql, bound = to_named_params("SELECT '$1 off' AS promo, preco FROM produtos WHERE id=$1", [7])

    assert sql == "SELECT '$1 off' AS promo, preco FROM produtos WHERE id=:p1"
    assert bound == {"p1": 7}


def test_repeated_placeholder_binds_once() -> None:
    sql, bound = to_named_params("WHERE (email = $1 OR nome = $1) AND senha = $2", ["ana", "x"])

    assert sql == "WHERE (email = :p1 OR nome = :p1) AND senha = :p2"
    assert bound == {"p1": "ana", "p2": "x"}


def test_run_returns_rows_as_dicts(tmp_path: Path) -> None:
    executor = PostgresSQLExecutor(url=f"sqlite:///{tmp_path / 'live.db'}")
    executor.ping()
    executor.run("CREATE TABLE produtos (id INTEGER PRIMARY KEY, nome TEXT, preco REAL)")

    assert executor.run("INSERT INTO produtos (nome, preco) VALUES ($1, $2)", ["Suco", 5.0]) == []
    rows = executor.run("SELECT id, nome, preco FROM produtos WHERE nome = $1", ["Suco"])

    assert rows == [{"id": 1, "nome": "Suco", "preco": 5.0}]
    executor.dispose()


def test_ping_raises_when_backend_is_unreachable(tmp_path: Path) -> None:
    executor = PostgresSQLExecutor(url=f"sqlite:///{tmp_path / 'missing' / 'live.db'}")

    with pytest.raises(OperationalError):
        executor.ping()

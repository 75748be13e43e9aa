"""Tests for the canteen operations running on the in-memory fallback."""

# ruff: noqa: PLR2004

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, TypeVar

import pytest

from src.core.data_layer import DataLayer
from src.core.inventory import CanteenService, ValidationError
from src.integrations.postgres_executor import PostgresSQLExecutor

T = TypeVar("T")

SEED = """
INSERT INTO funcionarios (id, nome, tipo, email, senha) VALUES
  (1, 'Maria', 'caixa', 'maria@x.com', '1234'),
  (2, 'Joao', 'gerente', 'joao@x.com', 'admin');
INSERT INTO produtos (id, id_estoque, nome, preco) VALUES
  (1, 1, 'Suco', 5.00),
  (2, 2, 'Coxinha', 6.00);
INSERT INTO estoque (id, id_produto, quantidade) VALUES
  (1, 1, 12),
  (2, 2, 8);
INSERT INTO vendas (id, id_funcionario, id_produto, quantidade, preco_total) VALUES
  (1, 1, 2, 1, 6.00);
"""


def run(awaitable: Awaitable[T]) -> T:
    return asyncio.run(awaitable)  # type: ignore[arg-type]


@pytest.fixture()
def service(tmp_path: Path) -> CanteenService:
    seed_path = tmp_path / "seed.sql"
    seed_path.write_text(SEED, encoding="utf-8")
    live = PostgresSQLExecutor(url=f"sqlite:///{tmp_path / 'missing' / 'live.db'}")
    return CanteenService(data=DataLayer(live=live, seed_candidates=[seed_path]))


def test_authenticate_by_name_or_email(service: CanteenService) -> None:
    assert run(service.authenticate("Maria", "1234")) == {
        "id": 1,
        "nome": "Maria",
        "tipo": "caixa",
        "email": "maria@x.com",
    }
    assert run(service.authenticate("joao@x.com", "admin"))["id"] == 2
    assert run(service.authenticate("Maria", "0000")) is None


def test_dashboard_summary(service: CanteenService) -> None:
    summary = run(service.dashboard())

    assert summary == {"produtos_baixos": [], "total_produtos": 2, "total_mov": 1}


def test_new_product_outbound_movement_goes_negative(service: CanteenService) -> None:
    product_id = run(service.create_product("Bread", "2.50", ""))

    assert product_id == 3
    listing = run(service.list_products("bread"))
    assert listing == [{"id": 3, "id_estoque": 0, "nome": "Bread", "preco": 2.5, "quantidade": 0}]
    low = run(service.dashboard())["produtos_baixos"]
    assert [row["nome"] for row in low] == ["Bread"]

    result = run(
        service.record_movement(user_id=2, product_id="3", movement_type="saida", quantity="3")
    )

    assert result == {"id_produto": 3, "quantidade": -3, "preco_total": 7.5}
    overview = run(service.stock_overview())
    bread = next(row for row in overview["produtos"] if row["id"] == 3)
    assert bread["quantidade"] == -3
    assert overview["movimentos"][0] == {
        "id": 2,
        "produto": "Bread",
        "funcionario": "Joao",
        "quantidade": 3,
        "preco_total": 7.5,
    }
    assert run(service.dashboard())["total_mov"] == 2


def test_inbound_movement_adds_without_sale(service: CanteenService) -> None:
    result = run(service.record_movement(user_id=1, product_id=1, movement_type="entrada", quantity=5))

    assert result == {"id_produto": 1, "quantidade": 17, "preco_total": None}
    assert run(service.dashboard())["total_mov"] == 1


def test_update_and_delete_product(service: CanteenService) -> None:
    run(service.update_product(1, "Suco de uva", "7"))
    renamed = run(service.list_products("uva"))
    assert renamed[0]["preco"] == 7.0

    run(service.delete_product(2))

    names = [row["nome"] for row in run(service.list_products())]
    assert names == ["Suco de uva"]
    assert run(service.stock_overview())["movimentos"] == []


def test_list_products_search_is_case_insensitive(service: CanteenService) -> None:
    assert [row["nome"] for row in run(service.list_products("COX"))] == ["Coxinha"]
    assert [row["nome"] for row in run(service.list_products())] == ["Coxinha", "Suco"]


@pytest.mark.parametrize(
    ("product_id", "movement_type", "quantity"),
    [
        ("abc", "entrada", 1),
        (0, "entrada", 1),
        (1, "entrada", "x"),
        (1, "entrada", "1.5"),
        (1, "entrada", None),
        (1, "ajuste", 1),
    ],
)
def test_record_movement_rejects_invalid_input(
    service: CanteenService, product_id: Any, movement_type: str, quantity: Any
) -> None:
    with pytest.raises(ValidationError):
        run(
            service.record_movement(
                user_id=1,
                product_id=product_id,
                movement_type=movement_type,
                quantity=quantity,
            )
        )


def test_create_product_requires_name(service: CanteenService) -> None:
    with pytest.raises(ValidationError):
        run(service.create_product("  ", 1.0))


def test_movement_on_null_stock_quantity_starts_from_zero(tmp_path: Path) -> None:
    seed_path = tmp_path / "null_stock.sql"
    seed_path.write_text(
        """
        INSERT INTO produtos (id, id_estoque, nome, preco) VALUES (1, 1, 'Suco', 5.00);
        INSERT INTO estoque (id, id_produto, quantidade) VALUES (1, 1, NULL);
        """,
        encoding="utf-8",
    )
    live = PostgresSQLExecutor(url=f"sqlite:///{tmp_path / 'missing' / 'live.db'}")
    service = CanteenService(data=DataLayer(live=live, seed_candidates=[seed_path]))

    assert run(service.list_products())[0]["quantidade"] == 0
    result = run(service.record_movement(user_id=1, product_id=1, movement_type="entrada", quantity=2))

    assert result == {"id_produto": 1, "quantidade": 2, "preco_total": None}
    assert run(service.list_products())[0]["quantidade"] == 2


def test_update_product_without_price_stores_null(service: CanteenService) -> None:
    run(service.update_product(1, "Suco de uva", None))

    assert run(service.list_products("uva"))[0]["preco"] is None

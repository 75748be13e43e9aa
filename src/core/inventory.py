"""Canteen operations built on top of the data layer.

Each method mirrors one request handler of the canteen: it validates the
form values, runs its queries through :class:`DataLayer` and shapes the
result. None of them knows whether the live or the fallback backend answered.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from src.core import queries
from src.core.data_layer import DataLayer

LOGGER = logging.getLogger(__name__)

MOVEMENT_TYPES: tuple[str, ...] = ("entrada", "saida")


class ValidationError(ValueError):
    """Raised when form input cannot be turned into a valid operation."""


def _to_number(value: Any, default: float = 0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Not a number: {value!r}") from None


@dataclass(slots=True)
class CanteenService:
    data: DataLayer

    async def authenticate(self, username: str, password: str) -> dict[str, Any] | None:
        rows = await self.data.query(queries.LOGIN, [username, password])
        if not rows:
            LOGGER.info("Login rejected for %s", username)
            return None
        return rows[0]

    async def dashboard(self) -> dict[str, Any]:
        low_stock = await self.data.query(queries.q_low_stock())
        total_products = await self.data.query(queries.COUNT_PRODUCTS)
        total_sales = await self.data.query(queries.COUNT_SALES)
        return {
            "produtos_baixos": low_stock,
            "total_produtos": total_products[0]["cnt"] if total_products else 0,
            "total_mov": total_sales[0]["cnt"] if total_sales else 0,
        }

    async def list_products(self, busca: str = "") -> list[dict[str, Any]]:
        if busca:
            return await self.data.query(queries.PRODUCT_SEARCH, [f"%{busca}%"])
        return await self.data.query(queries.PRODUCT_LISTING)

    async def create_product(self, nome: str, preco: Any = None, id_estoque: Any = None) -> int | None:
        if not nome or not nome.strip():
            raise ValidationError("Informe o nome do produto.")
        inserted = await self.data.query(
            queries.INSERT_PRODUCT,
            [int(_to_number(id_estoque)), nome, _to_number(preco)],
        )
        if not inserted:
            return None
        product_id = inserted[0]["id"]
        await self.data.query(queries.INSERT_STOCK, [product_id, 0])
        LOGGER.info("Product %s created with id=%s", nome, product_id)
        return product_id

    async def update_product(self, product_id: int, nome: str, preco: Any) -> None:
        price = None if preco is None or preco == "" else _to_number(preco)
        await self.data.query(queries.UPDATE_PRODUCT, [nome, price, product_id])

    async def delete_product(self, product_id: int) -> None:
        await self.data.query(queries.DELETE_STOCK_FOR_PRODUCT, [product_id])
        await self.data.query(queries.DELETE_PRODUCT, [product_id])
        LOGGER.info("Product id=%s deleted", product_id)

    async def stock_overview(self) -> dict[str, Any]:
        products = await self.data.query(queries.STOCK_LISTING)
        movements = await self.data.query(queries.q_recent_sales())
        return {"produtos": products, "movimentos": movements}

    async def record_movement(
        self,
        *,
        user_id: int,
        product_id: Any,
        movement_type: str,
        quantity: Any,
    ) -> dict[str, Any]:
        """Apply an inbound or outbound movement; outbound also records a sale.

        Stock is allowed to go below zero.
        """

        try:
            prod_id = int(product_id)
        except (TypeError, ValueError):
            raise ValidationError("Dados inválidos.") from None
        qty = _to_number(quantity, default=float("nan"))
        if prod_id <= 0 or math.isnan(qty) or not qty.is_integer():
            raise ValidationError("Dados inválidos.")
        if movement_type not in MOVEMENT_TYPES:
            raise ValidationError(f"Tipo de movimentação inválido: {movement_type!r}")
        qty = int(qty)

        price_rows = await self.data.query(queries.PRODUCT_PRICE, [prod_id])
        unit_price = float(price_rows[0]["preco"]) if price_rows and price_rows[0]["preco"] is not None else 0.0

        existing = await self.data.query(queries.STOCK_FOR_PRODUCT, [prod_id])
        stored = existing[0]["quantidade"] if existing else None
        current = int(stored) if stored is not None else 0
        new_balance = current + qty if movement_type == "entrada" else current - qty

        if existing:
            await self.data.query(queries.UPDATE_STOCK, [new_balance, prod_id])
        else:
            await self.data.query(queries.INSERT_STOCK, [prod_id, new_balance])

        sale_total = None
        if movement_type == "saida":
            sale_total = unit_price * qty
            await self.data.query(queries.INSERT_SALE, [user_id, prod_id, qty, sale_total])

        LOGGER.info(
            "Stock movement %s qty=%s product=%s balance=%s",
            movement_type,
            qty,
            prod_id,
            new_balance,
        )
        return {"id_produto": prod_id, "quantidade": new_balance, "preco_total": sale_total}

"""SQL issued by the canteen application.

Every statement here must also be understood by
``src.integrations.fallback_sql_executor``; a new statement needs a matching
shape there or it silently returns no rows in fallback mode.
"""

from __future__ import annotations

LOW_STOCK_THRESHOLD = 5
RECENT_SALES_LIMIT = 20

LOGIN = (
    "SELECT id, nome, tipo, email FROM funcionarios "
    "WHERE (email = $1 OR nome = $1) AND senha = $2"
)

COUNT_PRODUCTS = "SELECT COUNT(*)::int AS cnt FROM produtos"
COUNT_SALES = "SELECT COUNT(*)::int AS cnt FROM vendas"

_PRODUCTS_WITH_STOCK = """
    SELECT p.id, p.id_estoque, p.nome, p.preco, COALESCE(e.quantidade,0) AS quantidade
    FROM produtos p LEFT JOIN estoque e ON e.id_produto = p.id"""

PRODUCT_LISTING = _PRODUCTS_WITH_STOCK + " ORDER BY p.nome"
PRODUCT_SEARCH = _PRODUCTS_WITH_STOCK + " WHERE p.nome ILIKE $1 ORDER BY p.nome"

STOCK_LISTING = """
    SELECT p.id, p.nome, p.preco, COALESCE(e.quantidade,0) AS quantidade
    FROM produtos p LEFT JOIN estoque e ON e.id_produto = p.id ORDER BY p.nome"""

INSERT_PRODUCT = "INSERT INTO produtos (id_estoque, nome, preco) VALUES ($1,$2,$3) RETURNING id"
UPDATE_PRODUCT = "UPDATE produtos SET nome=$1, preco=$2 WHERE id=$3"
DELETE_STOCK_FOR_PRODUCT = "DELETE FROM estoque WHERE id_produto=$1"
DELETE_PRODUCT = "DELETE FROM produtos WHERE id=$1"

PRODUCT_PRICE = "SELECT preco FROM produtos WHERE id=$1"
STOCK_FOR_PRODUCT = "SELECT * FROM estoque WHERE id_produto=$1"
INSERT_STOCK = "INSERT INTO estoque (id_produto, quantidade) VALUES ($1,$2)"
UPDATE_STOCK = "UPDATE estoque SET quantidade=$1 WHERE id_produto=$2"
INSERT_SALE = (
    "INSERT INTO vendas (id_funcionario, id_produto, quantidade, preco_total) "
    "VALUES ($1,$2,$3,$4)"
)


def q_low_stock(threshold: int = LOW_STOCK_THRESHOLD) -> str:
    return f"""
    SELECT p.id, p.nome, p.preco, COALESCE(e.quantidade,0) AS quantidade
    FROM produtos p
    LEFT JOIN estoque e ON e.id_produto = p.id
    WHERE COALESCE(e.quantidade,0) < {int(threshold)}
    ORDER BY p.nome
    """


def q_recent_sales(limit: int = RECENT_SALES_LIMIT) -> str:
    return f"""
    SELECT v.id, p.nome AS produto, f.nome AS funcionario, v.quantidade, v.preco_total
    FROM vendas v
    JOIN produtos p ON p.id = v.id_produto
    JOIN funcionarios f ON f.id = v.id_funcionario
    ORDER BY v.id DESC LIMIT {int(limit)}
    """

"""Fallback SQL executor that answers the canteen's queries from memory.

This executor does not implement SQL. It recognises the fixed set of
statements the application issues (see ``src.core.queries``) and runs the
equivalent operation against an :class:`InMemoryStore`, returning rows with
the same column names the PostgreSQL backend would return.

Statements are normalised (lower case, collapsed whitespace) and tested
against ``SHAPE_ORDER`` top to bottom; the first match wins. Order matters
where one shape's text contains another's:

- ``low_stock`` must precede ``product_listing``: the low-stock query is the
  product listing plus a ``COALESCE(e.quantidade,0) < N`` filter.
- ``delete_stock_by_product`` and ``delete_product`` are distinguished by
  their target table only.

Placeholders are positional (``$1``, ``$2``, ...) and are bound exactly in
submission order. Statements that match no shape return ``[]``.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from src.core.observability import QUERY_CHANNEL, DataLayerObservationSink
from src.integrations.in_memory_store import InMemoryStore, Row
from src.integrations.seed_parser import coerce_scalar

LOGGER = logging.getLogger(__name__)

DEFAULT_RECENT_SALES_LIMIT = 20
DEFAULT_LOW_STOCK_THRESHOLD = 5

_INT_COLUMNS = {"id", "id_estoque", "id_produto", "id_funcionario", "quantidade"}
_FLOAT_COLUMNS = {"preco", "preco_total"}

_LOW_STOCK_RE = re.compile(r"coalesce\(\s*e\.quantidade\s*,\s*0\s*\)\s*<\s*(?P<threshold>-?\d+)")
_COUNT_RE = re.compile(
    r"^select count\(\*\)(?:::\w+)?(?: as (?P<alias>\w+))? from (?P<table>\w+)\s*;?$"
)
_LIMIT_RE = re.compile(r"\blimit (?P<limit>\d+)")
_INSERT_RE = re.compile(
    r"^insert into (?P<table>\w+) ?\((?P<columns>[^)]*)\) ?values ?\((?P<values>[^)]*)\)"
)
_ASSIGNMENT_RE = re.compile(r"(?P<column>\w+) ?= ?(?P<value>\$\d+|'(?:[^']|'')*'|[^,\s]+)")
_PLACEHOLDER_RE = re.compile(r"^\$(?P<index>\d+)$")


def normalize_sql(statement: str) -> str:
    return " ".join(statement.strip().rstrip(";").lower().split())


def _ilike_match(value: Any, pattern: Any) -> bool:
    if value is None or pattern is None:
        return False

    regex_parts: list[str] = []
    for ch in str(pattern):
        if ch == "%":
            regex_parts.append(".*")
        elif ch == "_":
            regex_parts.append(".")
        else:
            regex_parts.append(re.escape(ch))

    regex = "".join(regex_parts)
    return re.fullmatch(regex, str(value), re.IGNORECASE | re.DOTALL) is not None


def _collation_key(value: Any) -> tuple[bool, str]:
    """Accent- and case-insensitive ordering key for names."""

    if value is None:
        return (True, "")
    decomposed = unicodedata.normalize("NFKD", str(value))
    return (False, "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold())


def _coerce_column(column: str, value: Any) -> Any:
    """Mirror the backend's implicit casts of bound string parameters."""

    if value is None or isinstance(value, bool):
        return value
    if column in _INT_COLUMNS:
        try:
            return int(value)
        except (TypeError, ValueError):
            try:
                return int(float(value))
            except (TypeError, ValueError):
                return value
    if column in _FLOAT_COLUMNS:
        try:
            return float(value)
        except (TypeError, ValueError):
            return value
    return value


def _bind(token: str, params: Sequence[Any]) -> Any:
    token = token.strip()
    placeholder = _PLACEHOLDER_RE.match(token)
    if placeholder:
        index = int(placeholder.group("index")) - 1
        if index < 0 or index >= len(params):
            raise IndexError(f"No parameter bound for {token}")
        return params[index]
    if len(token) >= 2 and token.startswith("'") and token.endswith("'"):
        return coerce_scalar(token[1:-1].replace("''", "'"), quoted=True)
    return coerce_scalar(token, quoted=False)


def _where_value(statement: str, column: str, params: Sequence[Any]) -> Any:
    match = re.search(rf"\bwhere (?:\w+\.)?{column} ?= ?(?P<value>\$\d+|\S+)", statement)
    if match is None:
        raise ValueError(f"Statement has no WHERE {column} clause")
    return _coerce_column(column, _bind(match.group("value"), params))


def _counts(table: str) -> Callable[[str], bool]:
    def matches(statement: str) -> bool:
        match = _COUNT_RE.match(statement)
        return match is not None and match.group("table") == table

    return matches


@dataclass(frozen=True, slots=True)
class QueryShape:
    name: str
    matches: Callable[[str], bool]


SHAPE_ORDER: tuple[QueryShape, ...] = (
    QueryShape(
        "login",
        lambda q: q.startswith("select") and "from funcionarios" in q and "senha" in q,
    ),
    QueryShape(
        "low_stock",
        lambda q: q.startswith("select") and "from produtos" in q and _LOW_STOCK_RE.search(q) is not None,
    ),
    QueryShape("count_products", _counts("produtos")),
    QueryShape("count_sales", _counts("vendas")),
    QueryShape(
        "product_listing",
        lambda q: q.startswith("select") and "from produtos p left join estoque" in q,
    ),
    QueryShape("insert_product", lambda q: q.startswith("insert into produtos")),
    QueryShape("update_product", lambda q: q.startswith("update produtos set")),
    QueryShape("delete_stock_by_product", lambda q: q.startswith("delete from estoque")),
    QueryShape("delete_product", lambda q: q.startswith("delete from produtos")),
    QueryShape(
        "recent_sales",
        lambda q: q.startswith("select") and "from vendas v" in q and "join produtos" in q,
    ),
    QueryShape("product_price", lambda q: q.startswith("select preco from produtos where")),
    QueryShape("stock_by_product", lambda q: q.startswith("select * from estoque where")),
    QueryShape("insert_stock", lambda q: q.startswith("insert into estoque")),
    QueryShape("update_stock", lambda q: q.startswith("update estoque set")),
    QueryShape("insert_sale", lambda q: q.startswith("insert into vendas")),
)


def classify(statement: str) -> str | None:
    """Return the name of the first shape matching *statement*, if any."""

    normalized = normalize_sql(statement)
    for shape in SHAPE_ORDER:
        if shape.matches(normalized):
            return shape.name
    return None


@dataclass(slots=True)
class FallbackSQLExecutor:
    """Execute the application's statements against an in-memory store."""

    store: InMemoryStore
    observer: DataLayerObservationSink | None = None
    _handlers: dict[str, Callable[[str, Sequence[Any]], list[Row]]] = field(
        init=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        self._handlers = {shape.name: getattr(self, f"_run_{shape.name}") for shape in SHAPE_ORDER}

    def run(self, statement: str, params: Sequence[Any] = ()) -> list[Row]:
        normalized = normalize_sql(statement)
        params = list(params)
        for shape in SHAPE_ORDER:
            if shape.matches(normalized):
                LOGGER.debug("Fallback query matched shape=%s", shape.name)
                return self._handlers[shape.name](normalized, params)

        LOGGER.warning("Unrecognised query shape in fallback mode: %s", normalized[:200])
        if self.observer is not None:
            self.observer.log_event(
                QUERY_CHANNEL,
                "query_unrecognized",
                {"statement": normalized, "param_count": len(params)},
            )
        return []

    # -- helpers ---------------------------------------------------------

    def _stock_by_product(self) -> dict[Any, Any]:
        quantities: dict[Any, Any] = {}
        for record in self.store.filter("estoque"):
            quantities.setdefault(record.get("id_produto"), record.get("quantidade"))
        return quantities

    def _products_with_stock(self) -> list[Row]:
        quantities = self._stock_by_product()
        joined = []
        for product in self.store.filter("produtos"):
            quantity = quantities.get(product["id"])
            joined.append({**product, "quantidade": 0 if quantity is None else quantity})
        joined.sort(key=lambda row: _collation_key(row.get("nome")))
        return joined

    def _insert_fields(self, statement: str, params: Sequence[Any]) -> tuple[str, Row]:
        match = _INSERT_RE.match(statement)
        if match is None:
            raise ValueError(f"Unsupported INSERT statement: {statement}")
        columns = [column.strip() for column in match.group("columns").split(",")]
        tokens = [token.strip() for token in match.group("values").split(",")]
        if len(columns) != len(tokens):
            raise ValueError("INSERT column and value counts differ")
        fields = {
            column: _coerce_column(column, _bind(token, params))
            for column, token in zip(columns, tokens)
        }
        return match.group("table"), fields

    def _assignments(self, statement: str, params: Sequence[Any]) -> Row:
        set_clause = statement.split(" set ", 1)[1].split(" where ", 1)[0]
        patch: Row = {}
        for match in _ASSIGNMENT_RE.finditer(set_clause):
            column = match.group("column")
            patch[column] = _coerce_column(column, _bind(match.group("value"), params))
        return patch

    @staticmethod
    def _returning(statement: str, row: Row) -> list[Row]:
        match = re.search(r"\breturning (?P<columns>[\w, ]+)", statement)
        if match is None:
            return []
        columns = [column.strip() for column in match.group("columns").split(",") if column.strip()]
        return [{column: row.get(column) for column in columns}]

    # -- shapes ----------------------------------------------------------

    def _run_login(self, statement: str, params: Sequence[Any]) -> list[Row]:
        login, password = params[0], params[1]
        matches = self.store.filter(
            "funcionarios",
            lambda row: (row.get("nome") == login or row.get("email") == login)
            and row.get("senha") == password,
        )
        return [
            {"id": row["id"], "nome": row.get("nome"), "tipo": row.get("tipo"), "email": row.get("email")}
            for row in matches
        ]

    def _run_low_stock(self, statement: str, params: Sequence[Any]) -> list[Row]:
        match = _LOW_STOCK_RE.search(statement)
        threshold = int(match.group("threshold")) if match else DEFAULT_LOW_STOCK_THRESHOLD
        return [
            {
                "id": row["id"],
                "nome": row.get("nome"),
                "preco": row.get("preco"),
                "quantidade": row["quantidade"],
            }
            for row in self._products_with_stock()
            if isinstance(row["quantidade"], (int, float)) and row["quantidade"] < threshold
        ]

    def _count(self, statement: str, table: str) -> list[Row]:
        match = _COUNT_RE.match(statement)
        alias = match.group("alias") if match and match.group("alias") else "count"
        return [{alias: self.store.count(table)}]

    def _run_count_products(self, statement: str, params: Sequence[Any]) -> list[Row]:
        return self._count(statement, "produtos")

    def _run_count_sales(self, statement: str, params: Sequence[Any]) -> list[Row]:
        return self._count(statement, "vendas")

    def _run_product_listing(self, statement: str, params: Sequence[Any]) -> list[Row]:
        rows = self._products_with_stock()
        if " ilike " in statement and params:
            pattern = params[0]
            rows = [row for row in rows if _ilike_match(row.get("nome"), pattern)]
        include_reference = "p.id_estoque" in statement
        projected = []
        for row in rows:
            item: Row = {"id": row["id"]}
            if include_reference:
                item["id_estoque"] = row.get("id_estoque")
            item.update(nome=row.get("nome"), preco=row.get("preco"), quantidade=row["quantidade"])
            projected.append(item)
        return projected

    def _run_insert_product(self, statement: str, params: Sequence[Any]) -> list[Row]:
        _, fields = self._insert_fields(statement, params)
        product_id = self.store.insert("produtos", fields)
        self.store.insert("estoque", {"id_produto": product_id, "quantidade": 0})
        return self._returning(statement, {**fields, "id": product_id})

    def _run_update_product(self, statement: str, params: Sequence[Any]) -> list[Row]:
        product_id = _where_value(statement, "id", params)
        patch = self._assignments(statement, params)
        self.store.update("produtos", lambda row: row["id"] == product_id, patch)
        return []

    def _run_delete_stock_by_product(self, statement: str, params: Sequence[Any]) -> list[Row]:
        product_id = _where_value(statement, "id_produto", params)
        self.store.remove("estoque", lambda row: row.get("id_produto") == product_id)
        return []

    def _run_delete_product(self, statement: str, params: Sequence[Any]) -> list[Row]:
        product_id = _where_value(statement, "id", params)
        self.store.remove("estoque", lambda row: row.get("id_produto") == product_id)
        self.store.remove("produtos", lambda row: row["id"] == product_id)
        return []

    def _run_recent_sales(self, statement: str, params: Sequence[Any]) -> list[Row]:
        match = _LIMIT_RE.search(statement)
        limit = int(match.group("limit")) if match else DEFAULT_RECENT_SALES_LIMIT
        products = {row["id"]: row for row in self.store.filter("produtos")}
        employees = {row["id"]: row for row in self.store.filter("funcionarios")}

        rows: list[Row] = []
        for sale in reversed(self.store.filter("vendas")):
            if len(rows) >= limit:
                break
            product = products.get(sale.get("id_produto"))
            employee = employees.get(sale.get("id_funcionario"))
            if product is None or employee is None:
                continue
            rows.append(
                {
                    "id": sale["id"],
                    "produto": product.get("nome"),
                    "funcionario": employee.get("nome"),
                    "quantidade": sale.get("quantidade"),
                    "preco_total": sale.get("preco_total"),
                }
            )
        return rows

    def _run_product_price(self, statement: str, params: Sequence[Any]) -> list[Row]:
        product_id = _where_value(statement, "id", params)
        return [
            {"preco": row.get("preco")}
            for row in self.store.filter("produtos", lambda row: row["id"] == product_id)
        ]

    def _run_stock_by_product(self, statement: str, params: Sequence[Any]) -> list[Row]:
        product_id = _where_value(statement, "id_produto", params)
        return [
            dict(row)
            for row in self.store.filter("estoque", lambda row: row.get("id_produto") == product_id)
        ]

    def _run_insert_stock(self, statement: str, params: Sequence[Any]) -> list[Row]:
        _, fields = self._insert_fields(statement, params)
        product_id = fields.get("id_produto")
        existing = self.store.first("estoque", lambda row: row.get("id_produto") == product_id)
        if existing is not None:
            self.store.update("estoque", lambda row: row is existing, fields)
            return self._returning(statement, existing)
        stock_id = self.store.insert("estoque", fields)
        return self._returning(statement, {**fields, "id": stock_id})

    def _run_update_stock(self, statement: str, params: Sequence[Any]) -> list[Row]:
        product_id = _where_value(statement, "id_produto", params)
        patch = self._assignments(statement, params)
        self.store.update("estoque", lambda row: row.get("id_produto") == product_id, patch)
        return []

    def _run_insert_sale(self, statement: str, params: Sequence[Any]) -> list[Row]:
        _, fields = self._insert_fields(statement, params)
        sale_id = self.store.insert("vendas", fields)
        return self._returning(statement, {**fields, "id": sale_id})

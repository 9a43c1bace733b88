"""
Relational query provider used by the histogram engine.

The engine only needs four round trips to the database: a MIN/MAX observation,
rendering the caller's row set as a subquery, the bucket aggregate and, for a
degenerate range, an equality count. ``QueryProvider`` describes that contract;
``SQLAlchemyQueryProvider`` implements it for SQLAlchemy ``Select`` row sets.

Usage:
    from sqlalchemy import select, table, column
    from sqlhist.db import get_engine
    from sqlhist.provider import SQLAlchemyQueryProvider

    products = table("products", column("price"), column("category"))
    rows = select(products).where(products.c.category == "tools")
    provider = SQLAlchemyQueryProvider(get_engine())
    provider.observe_bound("price", rows, "max")
"""
from __future__ import annotations

import logging
import time
from typing import Any, Literal, Mapping, Optional, Protocol, Sequence

from sqlalchemy import func, literal_column, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.sql import Select

from . import metrics
from .columns import ColumnRef
from .config import settings
from .db import dialect_name
from .sqlgen_glot import HistogramSQLBuilder

logger = logging.getLogger(__name__)

BoundKind = Literal["min", "max"]

_VALUE = "histogram_value"


class QueryProvider(Protocol):
    """What the histogram engine needs from the surrounding data layer."""

    def observe_bound(self, expression: str, row_set: Any, kind: BoundKind) -> Optional[float]:
        ...

    def render_subquery(self, row_set: Any, selected_expression: str) -> str:
        ...

    def execute_aggregate(
        self,
        subquery_sql: str,
        column: ColumnRef,
        lo: float,
        hi: float,
        num_buckets: int,
        bucket_size: float,
    ) -> Sequence[Mapping[str, Any]]:
        ...

    def execute_equality_count(self, expression: str, row_set: Any, value: float) -> int:
        ...


class SQLAlchemyQueryProvider:
    """QueryProvider over a SQLAlchemy engine; row sets are ``Select`` statements.

    Selects are generative, so nothing here mutates the caller's statement.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.builder = HistogramSQLBuilder(dialect_name(engine))

    def _log_sql(self, kind: str, sql: str) -> None:
        level = logging.INFO if settings.log_sql else logging.DEBUG
        logger.log(level, "[%s] %s", kind, sql)

    def _record(self, kind: str, started: float) -> None:
        labels = {"kind": kind}
        metrics.counter_inc("histogram_sql_queries_total", labels)
        metrics.summary_observe("histogram_sql_seconds", time.perf_counter() - started, labels)

    def _reduce(self, row_set: Select, *columns) -> Select:
        # keep the row set's FROM/WHERE, drop its select list and ordering
        return row_set.with_only_columns(*columns, maintain_column_froms=True).order_by(None)

    def _values(self, row_set: Select, expression: str):
        """Row set narrowed to ``expression`` as a subquery, for aggregating over.

        Aggregates go in an outer query so the row set's own LIMIT, OFFSET,
        DISTINCT and GROUP BY still decide which rows are counted. Ordering is
        kept only where a row limit depends on it.
        """
        narrowed = row_set.with_only_columns(literal_column(expression).label(_VALUE), maintain_column_froms=True)
        if narrowed._limit_clause is None and narrowed._offset_clause is None:
            narrowed = narrowed.order_by(None)
        return narrowed.subquery()

    def observe_bound(self, expression: str, row_set: Select, kind: BoundKind) -> Optional[float]:
        """MIN or MAX of ``expression`` over the row set; None when it has no rows."""
        if kind not in ("min", "max"):
            raise ValueError(f"Unsupported bound kind: {kind!r}")
        agg = func.min if kind == "min" else func.max
        values = self._values(row_set, expression)
        stmt = select(agg(values.c[_VALUE]))
        self._log_sql(f"observe_{kind}", str(stmt))
        started = time.perf_counter()
        with self.engine.connect() as conn:
            value = conn.execute(stmt).scalar()
        self._record(f"observe_{kind}", started)
        return None if value is None else float(value)

    def render_subquery(self, row_set: Select, selected_expression: str) -> str:
        """Row set as SQL text selecting only ``selected_expression``.

        Prior ordering is replaced by ``ORDER BY 1`` for engines that reject
        unordered subqueries. Bound values are inlined as literals so the text
        can be embedded in another statement.
        """
        stmt = self._reduce(row_set, literal_column(selected_expression)).order_by(text("1"))
        compiled = stmt.compile(dialect=self.engine.dialect, compile_kwargs={"literal_binds": True})
        return str(compiled)

    def execute_aggregate(
        self,
        subquery_sql: str,
        column: ColumnRef,
        lo: float,
        hi: float,
        num_buckets: int,
        bucket_size: float,
    ) -> list[Mapping[str, Any]]:
        """Run the bucket aggregate; rows are mappings ordered by bucket."""
        sql = self.builder.build_bucket_query(subquery_sql, column, lo, hi, num_buckets, bucket_size)
        self._log_sql("aggregate", sql)
        started = time.perf_counter()
        with self.engine.connect() as conn:
            rows = conn.execute(text(sql)).mappings().all()
        self._record("aggregate", started)
        return list(rows)

    def execute_equality_count(self, expression: str, row_set: Select, value: float) -> int:
        """Number of rows in the row set whose ``expression`` equals ``value``."""
        values = self._values(row_set, expression)
        stmt = select(func.count()).select_from(values).where(values.c[_VALUE] == value)
        self._log_sql("equality_count", str(stmt))
        started = time.perf_counter()
        with self.engine.connect() as conn:
            count = conn.execute(stmt).scalar()
        self._record("equality_count", started)
        return int(count or 0)

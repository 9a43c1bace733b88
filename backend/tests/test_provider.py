"""
Tests for the SQLAlchemy query provider against DuckDB.
"""
import pytest
import sqlglot
from sqlalchemy import select, text

from sqlhist import metrics
from sqlhist.columns import parse_column


class TestObserveBound:

    def test_min_and_max(self, provider, rows_for):
        rows = rows_for("tools")

        assert provider.observe_bound("price", rows, "min") == 1.0
        assert provider.observe_bound("price", rows, "max") == 9.0

    def test_expression(self, provider, rows_for):
        assert provider.observe_bound("price * 2", rows_for("tools"), "max") == 18.0

    def test_empty_row_set_is_none(self, provider, rows_for):
        assert provider.observe_bound("price", rows_for("nothing"), "min") is None

    def test_nulls_are_ignored(self, provider, rows_for):
        assert provider.observe_bound("price", rows_for("garden"), "max") == 50.0

    def test_unknown_kind(self, provider, rows_for):
        with pytest.raises(ValueError):
            provider.observe_bound("price", rows_for("tools"), "avg")

    def test_limited_row_set(self, provider, products):
        """Bounds come only from the rows the LIMIT keeps"""
        rows = (
            select(products)
            .where(products.c.category == "tools")
            .order_by(products.c.price)
            .limit(2)
        )

        assert provider.observe_bound("price", rows, "min") == 1.0
        assert provider.observe_bound("price", rows, "max") == 2.0

    def test_offset_follows_row_set_ordering(self, provider, products):
        rows = (
            select(products)
            .where(products.c.category == "tools")
            .order_by(products.c.price.desc())
            .limit(4)
            .offset(1)
        )

        assert provider.observe_bound("price", rows, "max") == 5.0


class TestRenderSubquery:

    def test_selects_only_the_column(self, provider, rows_for):
        sql = provider.render_subquery(rows_for("tools"), "price * 1.1 AS adj_price")

        assert sql.startswith("SELECT price * 1.1 AS adj_price")
        assert "'tools'" in sql
        assert "ORDER BY 1" in sql
        assert "DESC" not in sql.upper()
        sqlglot.parse_one(sql, read="duckdb")

    def test_does_not_mutate_row_set(self, provider, products, rows_for):
        rows = rows_for("tools")
        before = str(rows)

        provider.render_subquery(rows, "price")

        assert str(rows) == before
        assert len(rows.selected_columns) == 3

    def test_unfiltered_table(self, provider, products, engine):
        sql = provider.render_subquery(select(products), "price")

        with engine.connect() as conn:
            assert len(conn.execute(text(sql)).all()) == 10


class TestExecuteAggregate:

    def test_rows_are_ordered_mappings(self, provider, rows_for):
        sql = provider.render_subquery(rows_for("tools"), "price")
        rows = provider.execute_aggregate(sql, parse_column("price"), 0.0, 10.0, 2, 5.0)

        assert [dict(r) for r in rows] == [
            {"bucket": 1, "frequency": 3},
            {"bucket": 2, "frequency": 2},
        ]

    def test_out_of_range_rows_get_null_bucket(self, provider, rows_for):
        sql = provider.render_subquery(rows_for("tools"), "price")
        rows = provider.execute_aggregate(sql, parse_column("price"), 2.0, 5.0, 3, 1.0)

        by_bucket = {r["bucket"]: r["frequency"] for r in rows}
        # 1 and 9 fall outside [2, 5]; 5 == max lands in the last bucket
        assert by_bucket == {1: 2, 3: 1, None: 2}

    def test_null_values_get_null_bucket(self, provider, rows_for):
        sql = provider.render_subquery(rows_for("garden"), "price")
        rows = provider.execute_aggregate(sql, parse_column("price"), 0.0, 100.0, 10, 10.0)

        by_bucket = {r["bucket"]: r["frequency"] for r in rows}
        assert by_bucket == {6: 1, None: 1}

    def test_records_metrics(self, provider, rows_for):
        sql = provider.render_subquery(rows_for("tools"), "price")
        provider.execute_aggregate(sql, parse_column("price"), 0.0, 10.0, 2, 5.0)

        assert metrics.counter_value("histogram_sql_queries_total", {"kind": "aggregate"}) == 1
        total, count = metrics.summary_value("histogram_sql_seconds", {"kind": "aggregate"})
        assert count == 1
        assert total >= 0


class TestEqualityCount:

    def test_counts_matching_rows(self, provider, rows_for):
        assert provider.execute_equality_count("price", rows_for("bench"), 5.0) == 3
        assert provider.execute_equality_count("price", rows_for("tools"), 2.0) == 2

    def test_expression(self, provider, rows_for):
        assert provider.execute_equality_count("price * 2", rows_for("bench"), 10.0) == 3

    def test_no_match(self, provider, rows_for):
        assert provider.execute_equality_count("price", rows_for("tools"), 3.0) == 0

    def test_limited_row_set(self, provider, products):
        rows = (
            select(products)
            .where(products.c.category == "tools")
            .order_by(products.c.price.desc())
            .limit(2)
        )

        assert provider.execute_equality_count("price", rows, 9.0) == 1
        assert provider.execute_equality_count("price", rows, 2.0) == 0

    def test_distinct_row_set(self, provider, products):
        rows = select(products.c.price).where(products.c.category == "bench").distinct()

        assert provider.execute_equality_count("price", rows, 5.0) == 1

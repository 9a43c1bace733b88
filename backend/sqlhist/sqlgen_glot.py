"""
SQLGlot-based SQL generation for histogram bucketing.
Builds the equal-width binning aggregate for the dialect of the target engine.
"""
import logging
import sqlglot
from sqlglot import exp

from .columns import ColumnRef
from .config import settings

logger = logging.getLogger(__name__)


class HistogramSQLBuilder:
    """
    Generate the bucket/frequency aggregate using SQLGlot.

    The binning expression is portable (no reliance on a native WIDTH_BUCKET),
    so boundary handling is identical on every engine: values below ``lo`` or
    above ``hi`` get a NULL bucket, ``hi`` itself lands in the last bucket.
    """

    def __init__(self, dialect: str = "duckdb"):
        """
        Initialize query builder.

        Args:
            dialect: Target SQL dialect (duckdb, postgres, mysql, mssql, sqlite),
                SQLAlchemy dialect names and driver-qualified names are accepted
        """
        self.dialect = self._normalize_dialect(dialect)

    def _normalize_dialect(self, dialect: str) -> str:
        """
        Normalize dialect names to SQLGlot format.

        Maps SQLAlchemy dialect names (``engine.dialect.name``) to SQLGlot's names.
        """
        mapping = {
            "duckdb": "duckdb",
            "postgres": "postgres",
            "postgresql": "postgres",
            "mysql": "mysql",
            "mariadb": "mysql",
            "mssql": "tsql",
            "sqlserver": "tsql",
            "sqlite": "sqlite",
            "oracle": "oracle",
            "snowflake": "snowflake",
        }
        base = (dialect or "").lower().split("+", 1)[0]
        return mapping.get(base, "duckdb")

    def _to_literal(self, value: float) -> exp.Expression:
        """Numeric literal; negatives are parenthesized so ``x - (-5.0)`` stays unambiguous."""
        lit = exp.Literal.number(value)
        if value < 0:
            return exp.paren(lit)
        return lit

    def column_reference(self, column: ColumnRef) -> exp.Expression:
        """
        Reference to the histogram column as exposed by the subquery.

        A table qualifier is dropped since the subquery re-exposes the column
        under its bare name.
        """
        ref = sqlglot.parse_one(column.alias, read=self.dialect)
        if isinstance(ref, exp.Column) and ref.args.get("table") is not None:
            ref = exp.Column(this=ref.this.copy())
        return ref

    def build_bucket_expression(
        self,
        value: exp.Expression,
        lo: float,
        hi: float,
        num_buckets: int,
        bucket_size: float,
    ) -> exp.Expression:
        """
        Build the equal-width binning expression.

        CASE WHEN value >= lo AND value <= hi
             THEN LEAST(CAST(FLOOR((value - lo) / bucket_size) AS BIGINT) + 1, num_buckets)
        END

        Buckets are 1-based; anything outside ``[lo, hi]`` (and NULL) yields NULL.
        """
        lo_lit = self._to_literal(float(lo))
        hi_lit = self._to_literal(float(hi))
        offset = exp.paren(exp.Sub(this=value.copy(), expression=lo_lit.copy()))
        scaled = exp.Div(this=offset, expression=self._to_literal(float(bucket_size)))
        index = exp.Add(
            this=exp.Cast(this=exp.Floor(this=scaled), to=exp.DataType.build("BIGINT")),
            expression=exp.Literal.number(1),
        )
        clamped = exp.Least(this=index, expressions=[exp.Literal.number(int(num_buckets))])
        in_range = exp.and_(
            exp.GTE(this=value.copy(), expression=lo_lit),
            exp.LTE(this=value.copy(), expression=hi_lit),
        )
        return exp.Case(ifs=[exp.If(this=in_range, true=clamped)])

    def build_bucket_query(
        self,
        subquery_sql: str,
        column: ColumnRef,
        lo: float,
        hi: float,
        num_buckets: int,
        bucket_size: float,
    ) -> str:
        """
        Build the bucket/frequency aggregate over a rendered subquery.

        Output columns are ``settings.bucket_column`` and ``settings.frequency_column``,
        grouped and ordered by bucket.

        Example:
            >>> builder = HistogramSQLBuilder("duckdb")
            >>> sql = builder.build_bucket_query(
            ...     "SELECT price FROM products ORDER BY 1",
            ...     parse_column("price"),
            ...     lo=0.0, hi=10.0, num_buckets=2, bucket_size=5.0,
            ... )
        """
        inner = sqlglot.parse_one(subquery_sql, read=self.dialect)
        bucket = self.build_bucket_expression(self.column_reference(column), lo, hi, num_buckets, bucket_size)
        bucket_col = exp.column(settings.bucket_column)

        query = (
            exp.select(
                exp.alias_(bucket, settings.bucket_column),
                exp.alias_(exp.Count(this=exp.Star()), settings.frequency_column),
            )
            .from_(inner.subquery(settings.subquery_alias))
            # SQL Server cannot group by a select-list alias
            .group_by(bucket.copy() if self.dialect == "tsql" else bucket_col)
            .order_by(bucket_col.copy())
        )
        sql = query.sql(dialect=self.dialect)
        logger.debug("[SQLGlot] bucket query (%s): %s", self.dialect, sql)
        return sql


"""
Database-side histogram over a numeric column of a filtered row set.

The engine resolves the bucketed range, sizes the buckets and lets the
database count rows per bucket, then maps each 1-based bucket index back to
its label (the lowest value the bucket can hold).

Usage:
    from sqlhist.histogram import HistogramEngine
    from sqlhist.schemas import HistogramSpec

    spec = HistogramSpec(query=rows, column="price", bucket_size=5)
    HistogramEngine(spec, provider).results()   # {0.0: 3, 5.0: 2}
"""
from __future__ import annotations

import logging
import math
from functools import cached_property
from typing import Any, Iterable, Mapping, Optional

from .columns import parse_column
from .config import settings
from .errors import InvalidConfiguration
from .provider import QueryProvider
from .schemas import HistogramSpec

logger = logging.getLogger(__name__)

# absorbs float noise such as 0.3 / 0.1 == 2.9999999999999996
_EPSILON = 1e-9


def _round_half_away(x: float) -> int:
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


_ROUNDERS = {
    None: _round_half_away,
    "down": math.floor,
    "up": math.ceil,
}


def round_to_increment(value: Optional[float], bucket_size: float, direction: Optional[str] = None) -> float:
    """Round ``value`` to a multiple of ``bucket_size``.

    ``direction`` is ``"down"`` (floor), ``"up"`` (ceil) or None for nearest,
    halves away from zero. A missing value (empty row set) rounds to 0.
    """
    if value is None:
        return 0.0
    try:
        rounder = _ROUNDERS[direction]
    except KeyError:
        raise ValueError(f"Unsupported rounding direction: {direction!r}") from None
    denominator = 1 / bucket_size
    scaled = value * denominator
    nearest = round(scaled)
    if abs(scaled - nearest) < _EPSILON * max(1.0, abs(scaled)):
        scaled = nearest
    return rounder(scaled) / denominator


class HistogramEngine:
    """Computes one histogram for a HistogramSpec through a QueryProvider.

    Derived values are computed on first use and cached for the lifetime of
    the instance, so repeated ``results()`` calls never observe the data range
    again. In fixed-count mode the raw observed bounds are read first, the
    bucket size is derived from them, and only then are the bounds rounded.
    """

    def __init__(self, spec: HistogramSpec, provider: QueryProvider):
        self.spec = spec
        self.provider = provider
        self.column = parse_column(spec.column)

    @property
    def query(self) -> Any:
        return self.spec.query

    @cached_property
    def source_min(self) -> Optional[float]:
        value = self.provider.observe_bound(self.column.expression, self.query, "min")
        logger.debug("Observed min of %s: %s", self.column.expression, value)
        return value

    @cached_property
    def source_max(self) -> Optional[float]:
        value = self.provider.observe_bound(self.column.expression, self.query, "max")
        logger.debug("Observed max of %s: %s", self.column.expression, value)
        return value

    @cached_property
    def bucket_size(self) -> float:
        if self.spec.mode == "size":
            size = self.spec.bucket_size if self.spec.bucket_size is not None else settings.default_bucket_size
            return float(size)

        lo, hi = self.source_min, self.source_max
        if lo is None or hi is None:
            raise InvalidConfiguration(
                f"Cannot derive a bucket size for {self.spec.buckets} buckets: "
                f"no values of {self.column.expression} in the row set"
            )
        size = (hi - lo) / self.spec.buckets
        if size == 0:
            raise InvalidConfiguration(
                f"Cannot split a single value ({lo}) of {self.column.expression} into "
                f"{self.spec.buckets} buckets; pass bucket_size instead"
            )
        logger.debug("Derived bucket size %s from [%s, %s] / %s", size, lo, hi, self.spec.buckets)
        return float(size)

    @cached_property
    def min(self) -> float:
        if self.spec.min_value is not None:
            return float(self.spec.min_value)
        if self.spec.mode == "count":
            return 0.0
        return self._rounded(self.source_min, "down")

    @cached_property
    def max(self) -> float:
        if self.spec.max_value is not None:
            return float(self.spec.max_value)
        return self._rounded(self.source_max, "up")

    def _rounded(self, value: Optional[float], direction: str) -> float:
        # an empty row set resolves to 0 without needing a bucket size
        if value is None:
            return 0.0
        return round_to_increment(value, self.bucket_size, direction)

    @cached_property
    def num_buckets(self) -> int:
        if self.spec.mode == "count":
            # the last bucket is clamped up to max, so the count is exactly what was asked for
            return self.spec.buckets
        n = math.floor((self.max - self.min) / self.bucket_size + _EPSILON)
        return max(1, int(n))

    def bucket_label(self, bucket_num: int) -> float:
        """Minimum value that can land in 1-based bucket ``bucket_num``."""
        return self.min + self.bucket_size * (bucket_num - 1)

    def results(self) -> dict[float, int]:
        """Histogram as {bucket minimum: frequency}, ordered by bucket."""
        lo, hi = self.min, self.max
        if hi < lo:
            raise InvalidConfiguration(f"Resolved max ({hi}) is below resolved min ({lo})")
        if lo == hi:
            # single point: count it directly instead of binning an empty range
            count = self.provider.execute_equality_count(self.column.expression, self.query, lo)
            logger.debug("Degenerate range at %s: %s row(s)", lo, count)
            return {lo: count}

        logger.debug(
            "Bucketing %s over [%s, %s] into %s bucket(s) of %s",
            self.column.text, lo, hi, self.num_buckets, self.bucket_size,
        )
        subquery_sql = self.provider.render_subquery(self.query, self.column.text)
        rows = self.provider.execute_aggregate(
            subquery_sql, self.column, lo, hi, self.num_buckets, self.bucket_size,
        )
        return self._labeled(rows)

    def _labeled(self, rows: Iterable[Mapping[str, Any]]) -> dict[float, int]:
        out: dict[float, int] = {}
        for row in rows:
            bucket = row[settings.bucket_column]
            # NULL bucket: value outside [min, max]
            if bucket is None:
                continue
            out[self.bucket_label(int(bucket))] = int(row[settings.frequency_column])
        return out


def histogram(provider: QueryProvider, query: Any, column: str, options: Any = None, **kwargs) -> dict[float, int]:
    """Build a spec from loose options and return its histogram.

    Options go either in ``options`` (a mapping or a bare bucket size) or as
    keywords, e.g. ``histogram(provider, rows, "price", buckets=4)``.
    """
    if kwargs:
        if options is not None:
            raise InvalidConfiguration("Pass histogram options either positionally or as keywords, not both")
        options = kwargs
    spec = HistogramSpec.from_options(query, column, options)
    return HistogramEngine(spec, provider).results()

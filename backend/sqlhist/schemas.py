from __future__ import annotations

from numbers import Real
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict

from .errors import InvalidConfiguration


_OPTION_KEYS = {"bucket_size", "buckets", "min", "max"}


class HistogramSpec(BaseModel):
    """Immutable histogram configuration.

    Exactly one sizing mode applies: fixed-count when ``buckets`` is set
    (``bucket_size`` is then ignored and derived from the data), fixed-size
    otherwise. ``column`` is trusted SQL: a column name or an expression with an
    optional trailing ``AS alias``.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, populate_by_name=True)

    query: Any = Field(description="Filtered row set handle understood by the query provider")
    column: str = Field(min_length=1)
    bucket_size: Optional[float] = Field(default=None, gt=0)
    buckets: Optional[int] = Field(default=None, ge=1)
    min_value: Optional[float] = Field(default=None, alias="min")
    max_value: Optional[float] = Field(default=None, alias="max")

    @model_validator(mode="after")
    def _check_range(self) -> "HistogramSpec":
        if self.min_value is not None and self.max_value is not None and self.min_value > self.max_value:
            raise ValueError(f"min ({self.min_value}) must not exceed max ({self.max_value})")
        return self

    @property
    def mode(self) -> Literal["count", "size"]:
        # fixed-count wins when both a count and a size were given
        return "count" if self.buckets is not None else "size"

    @classmethod
    def from_options(cls, query: Any, column: Any, options: Any = None) -> "HistogramSpec":
        """Build a spec from loose options.

        ``options`` may be None, a bare number (the bucket size) or a mapping with
        any of ``bucket_size``, ``buckets``, ``min`` and ``max``.
        """
        if options is None:
            return cls(query=query, column=str(column))
        if isinstance(options, Mapping):
            unknown = set(options) - _OPTION_KEYS
            if unknown:
                raise InvalidConfiguration(f"Unsupported histogram option(s): {', '.join(sorted(map(str, unknown)))}")
            return cls(query=query, column=str(column), **dict(options))
        if isinstance(options, Real) and not isinstance(options, bool):
            return cls(query=query, column=str(column), bucket_size=float(options))
        raise InvalidConfiguration(f"Histogram options must be a mapping or a number, got {type(options).__name__}")

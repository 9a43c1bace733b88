"""
Column expression handling.

The configured column may be a plain column name or a SQL expression with a
trailing alias, e.g. ``price * 1.1 AS adj_price``. The select list of the
subquery keeps the text verbatim; everything else needs either the bare
expression (raw rows) or the alias (subquery output).
"""
from __future__ import annotations

import re
from dataclasses import dataclass

# first case-insensitive " as " only
_ALIAS_SPLIT = re.compile(r" as ", flags=re.IGNORECASE)


@dataclass(frozen=True)
class ColumnRef:
    text: str
    expression: str
    alias: str

    @property
    def has_alias(self) -> bool:
        return self.expression != self.alias


def parse_column(column: str) -> ColumnRef:
    """Split ``column`` into its expression and output-name parts.

    Without an alias delimiter both parts are the column text itself.
    """
    raw = str(column)
    m = _ALIAS_SPLIT.search(raw)
    if not m:
        return ColumnRef(text=raw, expression=raw, alias=raw)
    return ColumnRef(text=raw, expression=raw[: m.start()].strip(), alias=raw[m.end():].strip())

from .errors import HistogramError, InvalidConfiguration
from .histogram import HistogramEngine, histogram, round_to_increment
from .provider import QueryProvider, SQLAlchemyQueryProvider
from .schemas import HistogramSpec

__all__ = [
    "HistogramEngine",
    "HistogramError",
    "HistogramSpec",
    "InvalidConfiguration",
    "QueryProvider",
    "SQLAlchemyQueryProvider",
    "histogram",
    "round_to_increment",
]

from __future__ import annotations


class HistogramError(Exception):
    """Base class for errors raised by the histogram engine itself."""


class InvalidConfiguration(HistogramError, ValueError):
    """The histogram was configured in a way that cannot produce buckets.

    Raised for caller configuration problems only (e.g. a derived bucket width of
    zero). An empty bucket range found in the data is not an error.
    """

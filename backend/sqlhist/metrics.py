from __future__ import annotations

import threading
from typing import Dict, Tuple

# Per-process tallies of the SQL the histogram provider issues, keyed by
# metric name plus labels (the provider labels every query with its kind)

Key = Tuple[str, Tuple[Tuple[str, str], ...]]

_lock = threading.Lock()
_counters: Dict[Key, float] = {}
_summaries: Dict[Key, Tuple[float, int]] = {}


def _key(name: str, labels: Dict[str, str] | None) -> Key:
    return name, tuple(sorted((labels or {}).items()))


def counter_inc(name: str, labels: Dict[str, str] | None = None, amount: float = 1.0) -> None:
    with _lock:
        k = _key(name, labels)
        _counters[k] = _counters.get(k, 0.0) + float(amount)


def counter_value(name: str, labels: Dict[str, str] | None = None) -> float:
    with _lock:
        return _counters.get(_key(name, labels), 0.0)


def summary_observe(name: str, value: float, labels: Dict[str, str] | None = None) -> None:
    with _lock:
        k = _key(name, labels)
        total, count = _summaries.get(k, (0.0, 0))
        _summaries[k] = (total + float(value), count + 1)


def summary_value(name: str, labels: Dict[str, str] | None = None) -> Tuple[float, int]:
    """(sum, count) observed so far, e.g. total seconds spent on aggregate queries."""
    with _lock:
        return _summaries.get(_key(name, labels), (0.0, 0))


def reset() -> None:
    with _lock:
        _counters.clear()
        _summaries.clear()

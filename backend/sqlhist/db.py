from __future__ import annotations

import logging
import os
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from .config import settings

logger = logging.getLogger(__name__)

# Cache for engines, keyed by DSN (normalized)
_ENGINE_CACHE: dict[str, Engine] = {}
_ENGINE_REVERSE: dict[int, str] = {}


# --- SQL helpers (dialect) ---
def dialect_name(engine: Engine) -> str:
    try:
        return str(getattr(getattr(engine, 'dialect', None), 'name', '') or '').lower()
    except AttributeError:
        return ''


def _normalize_duck_path(p: str) -> str:
    t = p or ""
    if t and t != ":memory:" and t.startswith("/."):
        t = os.path.abspath(t[1:])
    elif t and t != ":memory:" and not os.path.isabs(t):
        t = os.path.abspath(t)
    return t or ":memory:"


def _normalize_dsn(dsn: str) -> str:
    """Normalize MySQL DSNs to pymysql and DuckDB file DSNs to absolute paths."""
    d = (dsn or "").strip()
    low = d.lower()
    if low.startswith("mysql://"):
        return "mysql+pymysql://" + d[len("mysql://"):]
    # Accept DSN formats like duckdb:///path or duckdb:////abs, and extract the path
    if low.startswith("duckdb:///"):
        raw = d[len("duckdb:///"):]
        pth, sep, query = raw.partition("?")
        if pth in ("", ":memory:"):
            return d
        target = _normalize_duck_path(pth)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        return f"duckdb:///{target}" + (sep + query if sep else "")
    return d


def get_engine(dsn: Optional[str] = None) -> Engine:
    """Create (and cache) an engine from a SQLAlchemy DSN.

    Defaults to ``settings.database_url``. Network databases get
    conservative pool settings so long-running processes do not hold stale
    connections; engines are reused across calls.
    """
    d = _normalize_dsn(dsn or settings.database_url)
    eng = _ENGINE_CACHE.get(d)
    if eng is not None:
        return eng

    low = d.lower()
    kwargs: dict = {}
    if low.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    elif not low.startswith("duckdb"):
        # Network DBs (Postgres/MySQL/MSSQL/etc.)
        kwargs.update({
            "pool_pre_ping": True,
            "pool_size": 5,
            "max_overflow": 10,
            "pool_recycle": 1800,  # seconds
        })

    eng = create_engine(d, **kwargs)
    logger.debug("Created engine for dialect %s", dialect_name(eng))
    _ENGINE_CACHE[d] = eng
    _ENGINE_REVERSE[id(eng)] = d
    return eng


def check_connection(engine: Engine) -> tuple[bool, Optional[str]]:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True, None
    except Exception as e:  # pragma: no cover - basic smoke test only
        return False, str(e)


def dispose_engine(engine: Engine) -> bool:
    """Dispose an engine instance and remove it from cache if present."""
    key = _ENGINE_REVERSE.pop(id(engine), None)
    if key is not None:
        _ENGINE_CACHE.pop(key, None)
    engine.dispose()
    return key is not None


def dispose_all_engines() -> int:
    """Dispose and clear all cached engines."""
    count = 0
    for eng in list(_ENGINE_CACHE.values()):
        eng.dispose()
        count += 1
    _ENGINE_CACHE.clear()
    _ENGINE_REVERSE.clear()
    return count

"""
Shared fixtures: a file-backed DuckDB engine (via duckdb-engine) seeded with
a small products table, and a SQLAlchemy table handle to build row sets from.
"""
import pytest
from sqlalchemy import Float, Integer, String, column, create_engine, select, table, text

from sqlhist import metrics
from sqlhist.provider import SQLAlchemyQueryProvider


PRODUCTS = table(
    "products",
    column("id", Integer),
    column("category", String),
    column("price", Float),
)

# tools: the worked examples; bench: a single repeated value; garden: wide + NULL
SEED_ROWS = [
    (1, "tools", 1.0),
    (2, "tools", 2.0),
    (3, "tools", 2.0),
    (4, "tools", 5.0),
    (5, "tools", 9.0),
    (6, "bench", 5.0),
    (7, "bench", 5.0),
    (8, "bench", 5.0),
    (9, "garden", 50.0),
    (10, "garden", None),
]


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"duckdb:///{tmp_path / 'histogram.duckdb'}")
    with eng.begin() as conn:
        conn.execute(text("CREATE TABLE products (id INTEGER, category VARCHAR, price DOUBLE)"))
        conn.execute(
            text("INSERT INTO products VALUES (:id, :category, :price)"),
            [{"id": i, "category": c, "price": p} for i, c, p in SEED_ROWS],
        )
    yield eng
    eng.dispose()


@pytest.fixture
def provider(engine):
    return SQLAlchemyQueryProvider(engine)


@pytest.fixture
def products():
    return PRODUCTS


@pytest.fixture
def rows_for():
    """Row set factory: products filtered by category, ordered by price."""
    def _rows(category: str):
        return select(PRODUCTS).where(PRODUCTS.c.category == category).order_by(PRODUCTS.c.price.desc())
    return _rows


@pytest.fixture(autouse=True)
def _clean_metrics():
    metrics.reset()
    yield
    metrics.reset()

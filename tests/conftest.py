"""Shared fixtures: a small SQLite shop database and an in-memory S3 double."""

import sqlite3

import logfire
import pytest

from sqlreport.config import Settings
from sqlreport.database import ConnectionConfig, Database
from sqlreport.storage import S3Uploader
from sqlreport.tools import AgentDeps

# Spans are created but never exported while testing
logfire.configure(send_to_logfire=False, console=False)


SHOP_SCHEMA = """
CREATE TABLE customers (
    id INTEGER PRIMARY KEY,
    name VARCHAR(50) NOT NULL,
    country VARCHAR(2)
);
CREATE TABLE orders (
    id INTEGER PRIMARY KEY,
    customer_id INTEGER NOT NULL REFERENCES customers (id),
    status VARCHAR(20) NOT NULL,
    amount NUMERIC(10, 2) NOT NULL
);
CREATE INDEX ix_orders_status ON orders (status);
"""

CUSTOMERS = [
    (1, "Acme", "US"),
    (2, "Globex", "DE"),
    (3, "Initech", "US"),
]

ORDERS = [
    (1, 1, "shipped", 120.0),
    (2, 1, "shipped", 80.0),
    (3, 2, "pending", 50.0),
    (4, 3, "cancelled", 30.0),
    (5, 2, "shipped", 400.0),
    (6, 3, "pending", 10.0),
]


@pytest.fixture
def shop_db(tmp_path) -> str:
    """Path of a fresh SQLite file with customers and orders."""
    path = tmp_path / "shop.db"
    conn = sqlite3.connect(path)
    conn.executescript(SHOP_SCHEMA)
    conn.executemany("INSERT INTO customers VALUES (?, ?, ?)", CUSTOMERS)
    conn.executemany("INSERT INTO orders VALUES (?, ?, ?, ?)", ORDERS)
    conn.commit()
    conn.close()
    return str(path)


@pytest.fixture
def sqlite_config(shop_db) -> ConnectionConfig:
    return ConnectionConfig(type="sqlite", database=shop_db)


@pytest.fixture
def database(sqlite_config):
    db = Database.from_url(
        sqlite_config.sqlalchemy_url(),
        database_name=sqlite_config.database,
        include_tables=["customers", "orders"],
    )
    db.reflect()
    yield db
    db.dispose()


class FakeS3Client:
    """Records put_object calls; the first ``failures`` calls raise."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls = []

    def put_object(self, **kwargs):
        self.calls.append(kwargs)
        if len(self.calls) <= self.failures:
            raise ConnectionError(f"simulated S3 outage #{len(self.calls)}")
        return {"ETag": '"fake"'}


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def uploader(s3_client, sleep) -> S3Uploader:
    return S3Uploader(s3_client, bucket="reports-test", region="eu-west-1", sleep=sleep)


@pytest.fixture
def deps(database, uploader) -> AgentDeps:
    return AgentDeps(database=database, dialect="sqlite", datasource="shop", uploader=uploader)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        provider_credentials={},
        max_iterations=5,
        tool_timeout=5.0,
        turn_timeout=30.0,
        probe_timeout=5.0,
    )

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, insert
from sqlalchemy.exc import OperationalError

from app.config import Settings
from app.database import Base, PlaceStore, build_engine
from app.main import create_app
from app.models import Place

API_TOKEN = "test-token"
AUTH_HEADERS = {"Authorization": f"Bearer {API_TOKEN}"}


def _place(id_: int, name: str, **fields) -> dict:
    row = {
        "id": id_,
        "place_id": f"ChIJ{id_:06d}",
        "name": name,
        "site": None,
        "type": None,
        "phone": None,
        "full_address": None,
        "borough": None,
        "street": None,
        "city": None,
        "state": None,
        "county": None,
        "county_code": None,
        "country": "United States",
        "country_code": "US",
        "latitude": None,
        "longitude": None,
        "rating": None,
        "reviews": None,
        "working_hours": None,
        "about": None,
    }
    row.update(fields)
    return row


PLACE_ROWS = [
    _place(
        1,
        "Joe's Pizza",
        type="Pizza restaurant",
        city="New York",
        state="NY",
        county="New York County",
        county_code="061",
        borough="Manhattan",
        latitude=40.7306,
        longitude=-73.9893,
        rating=4.5,
        reviews=10,
        phone="+1 212-366-1182",
        working_hours='{"mon": "10AM-2AM"}',
    ),
    _place(
        2,
        "Brooklyn Bagel Co",
        type="Bagel shop",
        city="Brooklyn",
        state="NY",
        county="Kings County",
        county_code="047",
        borough="Brooklyn",
        rating=4.0,
        reviews=45,
    ),
    _place(
        3,
        "Austin Taco Stand",
        type="Taco restaurant",
        city="Austin",
        state="TX",
        county="Travis County",
        county_code="453",
        rating=3.5,
        reviews=60,
    ),
    _place(
        4,
        "Pizza_Palace 100%",
        type="Pizza restaurant",
        city="New York",
        state="NY",
        county="New York County",
        county_code="061",
        borough="Manhattan",
        rating=5.0,
        reviews=61,
    ),
    _place(5, "Mystery Spot", country="Canada", country_code="CA"),
]


def seed_database(path: Path, rows: list[dict] = PLACE_ROWS) -> str:
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(insert(Place.__table__), rows)
    engine.dispose()
    return f"sqlite+aiosqlite:///{path}"


def make_settings(**overrides) -> Settings:
    values = {
        "api_token": API_TOKEN,
        "rate_limit_max_requests": 0,
        "startup_connect_attempts": 1,
        "startup_retry_delay_seconds": 0,
        "log_level": "INFO",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return seed_database(tmp_path / "places.db")


@pytest_asyncio.fixture
async def store(database_url: str):
    place_store = PlaceStore(build_engine(database_url, pool_size=5), stream_batch_size=2)
    yield place_store
    await place_store.dispose()


@pytest.fixture
def client(database_url: str):
    app = create_app(
        make_settings(),
        store=PlaceStore(build_engine(database_url, pool_size=5), stream_batch_size=2),
    )
    with TestClient(app) as test_client:
        yield test_client


class BrokenResult:
    """Server-side result stand-in whose connection drops after ``fail_after`` rows."""

    def __init__(self, rows: list[dict], fail_after: int) -> None:
        self._rows = iter(rows[:fail_after])
        self.closed = False

    def mappings(self) -> BrokenResult:
        return self

    def __aiter__(self) -> BrokenResult:
        return self

    async def __anext__(self) -> dict:
        row = next(self._rows, None)
        if row is not None:
            return row
        raise OperationalError(
            "SELECT places.id FROM places WHERE places.city = ?",
            ("secret-value",),
            sqlite3.OperationalError("disk I/O error"),
        )

    async def close(self) -> None:
        self.closed = True

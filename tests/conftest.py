"""Shared fixtures: per-test SQLite database, faked external APIs, ASGI client."""

import asyncio
from datetime import datetime

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import sessionmaker

from country_xchange.config import Config
from country_xchange.core.sources import get_http_client
from country_xchange.database import get_db, get_db_engine, init_db
from country_xchange.models import Country
from main import app

COUNTRIES_HOST = "countries.test"
RATES_HOST = "rates.test"

NIGERIA = {
    "name": "Nigeria",
    "capital": "Abuja",
    "region": "Africa",
    "population": 206139589,
    "flag": "https://flagcdn.com/ng.svg",
    "currencies": [{"code": "NGN", "name": "Nigerian naira", "symbol": "₦"}],
}


class FakeSources:
    """Canned payloads for both external APIs, served through httpx.MockTransport."""

    def __init__(self):
        self.countries = [dict(NIGERIA)]
        self.rates = {
            "result": "success",
            "base_code": "USD",
            "rates": {"USD": 1, "NGN": 1500},
        }
        # host -> httpx exception class or HTTP status code
        self.failures = {}
        # host -> seconds to wait before answering
        self.delays = {}
        self.requested_hosts = []
        self.cancelled_hosts = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.requested_hosts.append(host)

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(host)
            if delay:
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled_hosts.append(host)
            raise
        finally:
            self.in_flight -= 1

        failure = self.failures.get(host)
        if isinstance(failure, int):
            return httpx.Response(failure, json={"error": "upstream failure"})
        if failure is not None:
            raise failure("simulated failure", request=request)

        if host == COUNTRIES_HOST:
            return httpx.Response(200, json=self.countries)
        if host == RATES_HOST:
            return httpx.Response(200, json=self.rates)
        return httpx.Response(404)


@pytest.fixture(autouse=True)
def app_config(tmp_path, monkeypatch):
    """Point the cache and both source URLs at test locations."""
    monkeypatch.setattr(Config, "cache_dir", str(tmp_path / "cache"))
    monkeypatch.setattr(
        Config, "countries_api_url", f"https://{COUNTRIES_HOST}/v2/all"
    )
    monkeypatch.setattr(
        Config, "exchange_rate_api_url", f"https://{RATES_HOST}/v6/latest/USD"
    )


@pytest.fixture
def engine(tmp_path):
    engine = get_db_engine(f"sqlite:///{tmp_path / 'countries.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fake_sources():
    return FakeSources()


@pytest.fixture
async def http_client(fake_sources):
    transport = httpx.MockTransport(fake_sources.handler)
    async with httpx.AsyncClient(transport=transport) as client:
        yield client


@pytest.fixture
async def client(session_factory, http_client):
    """ASGI client with the database and HTTP client dependencies overridden."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    async def override_get_http_client():
        yield http_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_http_client] = override_get_http_client
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_country(db_session):
    """Insert a country row directly, bypassing the refresh pipeline."""

    def _make_country(name, **fields):
        values = {
            "capital": None,
            "region": None,
            "population": 1000,
            "currency_code": None,
            "exchange_rate": None,
            "estimated_gdp": None,
            "flag_url": None,
            "last_refreshed_at": datetime(2025, 10, 27, 10, 0, 0),
        }
        values.update(fields)
        country = Country(name=name, **values)
        db_session.add(country)
        db_session.commit()
        return country

    return _make_country

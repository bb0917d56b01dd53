import asyncio
import logging

import httpx

from country_xchange.config import Config
from country_xchange.exceptions import DataSourceError

logger = logging.getLogger(__name__)

COUNTRIES_SOURCE = "Countries API"
EXCHANGE_RATE_SOURCE = "Exchange Rate API"


async def get_http_client():
    """Dependency yielding an HTTP client with the configured timeout."""
    timeout = Config.request_timeout_ms / 1000
    async with httpx.AsyncClient(timeout=timeout) as client:
        yield client


async def _get_json(client: httpx.AsyncClient, url: str, source: str):
    try:
        response = await client.get(url)
        response.raise_for_status()
        return response.json()
    except httpx.TimeoutException as e:
        raise DataSourceError(source, "Request timeout") from e
    except httpx.HTTPStatusError as e:
        raise DataSourceError(
            source, f"Upstream responded with {e.response.status_code}"
        ) from e
    except httpx.HTTPError as e:
        raise DataSourceError(source, str(e) or type(e).__name__) from e
    except ValueError as e:
        raise DataSourceError(source, "Response is not valid JSON") from e


async def fetch_countries(client: httpx.AsyncClient) -> list:
    """Fetch country data from the REST Countries API"""
    data = await _get_json(client, Config.countries_api_url, COUNTRIES_SOURCE)
    if not isinstance(data, list):
        raise DataSourceError(COUNTRIES_SOURCE, "Expected a list of countries")
    logger.info("Fetched %d countries", len(data))
    return data


async def fetch_exchange_rates(client: httpx.AsyncClient) -> dict:
    """Fetch the currency code to rate mapping from the Exchange Rate API"""
    data = await _get_json(client, Config.exchange_rate_api_url, EXCHANGE_RATE_SOURCE)
    rates = data.get("rates") if isinstance(data, dict) else None
    if not isinstance(rates, dict):
        raise DataSourceError(EXCHANGE_RATE_SOURCE, "Exchange rate data missing")
    logger.info("Fetched %d exchange rates", len(rates))
    return rates


async def fetch_external_data(client: httpx.AsyncClient):
    """
    Fetch both datasets concurrently; returns (countries, rates).
    The first failure cancels the other request before it propagates.
    """
    tasks = [
        asyncio.ensure_future(fetch_countries(client)),
        asyncio.ensure_future(fetch_exchange_rates(client)),
    ]
    try:
        countries, rates = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    return countries, rates

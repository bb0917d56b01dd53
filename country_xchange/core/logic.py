import asyncio
import logging
import math
import random
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from country_xchange.config import Config
from country_xchange.core.image_generator import generate_summary_image
from country_xchange.core.sources import fetch_external_data
from country_xchange.database import SessionLocal, init_db, transaction
from country_xchange.exceptions import DataSourceError
from country_xchange.models import Country, normalize_name

logger = logging.getLogger(__name__)

GDP_MULTIPLIER_MIN = 1000
GDP_MULTIPLIER_MAX = 2000
TOP_COUNTRIES_LIMIT = 5

# Columns overwritten when a refresh hits an existing name_lower
UPSERT_COLUMNS = (
    "name",
    "capital",
    "region",
    "population",
    "currency_code",
    "exchange_rate",
    "estimated_gdp",
    "flag_url",
    "last_refreshed_at",
)


class CountryRecordError(ValueError):
    """A source country that cannot be stored."""


@dataclass
class RefreshResult:
    total_countries: int
    last_refreshed_at: datetime
    processed: int
    skipped: int


def utcnow():
    """Naive UTC now, truncated to whole seconds so every backend stores it identically."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


# --- Field parsing ---


def parse_population(value):
    """Non-negative integer population, or None when missing or not a number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and math.isfinite(value):
        if value.is_integer() and value >= 0:
            return int(value)
    return None


def parse_exchange_rate(value):
    """Positive finite rate, or None. Numeric strings are accepted."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def extract_currency_code(currencies):
    """Code of the first listed currency, or None."""
    if not isinstance(currencies, list) or not currencies:
        return None
    first = currencies[0]
    code = first.get("code") if isinstance(first, dict) else None
    if not isinstance(code, str) or not code.strip():
        return None
    return code.strip()


def _optional_str(value):
    # REST Countries v3 returns capital as a list
    if isinstance(value, list):
        value = value[0] if value else None
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


def calculate_gdp(population, currency_code, exchange_rate, rng=random):
    """Estimated GDP under the null rules: no population wins, then no currency, then no rate."""
    if population is None:
        return None
    if currency_code is None:
        return 0.0
    if exchange_rate is None:
        return None
    multiplier = rng.randint(GDP_MULTIPLIER_MIN, GDP_MULTIPLIER_MAX)
    return population * multiplier / exchange_rate


def build_country_record(country_info, exchange_data, refreshed_at, rng=random):
    """Join one source country with the rate mapping into column values."""
    if not isinstance(country_info, dict):
        raise CountryRecordError("country entry is not an object")

    name = country_info.get("name")
    if not isinstance(name, str) or not name.strip():
        raise CountryRecordError("name is required")
    name = name.strip()

    population = parse_population(country_info.get("population"))
    currency_code = extract_currency_code(country_info.get("currencies"))
    exchange_rate = None
    if currency_code is not None:
        exchange_rate = parse_exchange_rate(exchange_data.get(currency_code))

    return {
        "name": name,
        "name_lower": normalize_name(name),
        "capital": _optional_str(country_info.get("capital")),
        "region": _optional_str(country_info.get("region")),
        "population": population,
        "currency_code": currency_code,
        "exchange_rate": exchange_rate,
        "estimated_gdp": calculate_gdp(population, currency_code, exchange_rate, rng),
        "flag_url": _optional_str(country_info.get("flag")),
        "last_refreshed_at": refreshed_at,
    }


# --- Persistence ---


def upsert_country(db_session, values):
    """Insert or overwrite one country keyed on name_lower in a single statement."""
    dialect = db_session.get_bind().dialect.name

    if dialect in ("mysql", "mariadb"):
        stmt = mysql.insert(Country).values(**values)
        stmt = stmt.on_duplicate_key_update(
            {column: stmt.inserted[column] for column in UPSERT_COLUMNS}
        )
    elif dialect in ("sqlite", "postgresql"):
        insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
        stmt = insert(Country).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Country.name_lower],
            set_={column: stmt.excluded[column] for column in UPSERT_COLUMNS},
        )
    else:
        existing_country = (
            db_session.query(Country)
            .filter(Country.name_lower == values["name_lower"])
            .first()
        )
        if existing_country:
            for key, value in values.items():
                setattr(existing_country, key, value)
        else:
            db_session.add(Country(**values))
        db_session.flush()
        return

    db_session.execute(stmt)


def save_countries(db_session, countries_data, exchange_data, refreshed_at, rng=random):
    """
    Upsert every storable country; returns (processed, skipped).
    Records without a usable name are skipped and logged, everything else is written.
    """
    processed = 0
    skipped = 0

    for country_info in countries_data:
        try:
            values = build_country_record(country_info, exchange_data, refreshed_at, rng)
        except CountryRecordError as e:
            skipped += 1
            logger.warning("Skipping country record %r: %s", country_info, e)
            continue

        upsert_country(db_session, values)
        processed += 1

    return processed, skipped


def get_summary_stats(db_session, limit=TOP_COUNTRIES_LIMIT):
    """Total row count and the top countries by estimated GDP."""
    total = db_session.query(Country).count()
    top_countries = (
        db_session.query(Country)
        .filter(Country.estimated_gdp.isnot(None))
        .order_by(Country.estimated_gdp.desc())
        .limit(limit)
        .all()
    )
    return total, top_countries


# --- Refresh pipeline ---


async def refresh_countries(db_session, client, rng=random):
    """
    Fetch both sources, persist the joined records in one transaction, then
    regenerate the summary image.

    Raises DataSourceError before anything is written when either source fails.
    Database errors roll the whole refresh back and propagate.
    """
    countries_data, exchange_data = await fetch_external_data(client)

    refreshed_at = utcnow()
    # Blocking database and Pillow work stays off the event loop
    return await run_in_threadpool(
        _persist_and_render, db_session, countries_data, exchange_data, refreshed_at, rng
    )


def _persist_and_render(db_session, countries_data, exchange_data, refreshed_at, rng):
    with transaction(db_session):
        processed, skipped = save_countries(
            db_session, countries_data, exchange_data, refreshed_at, rng
        )
    logger.info("Committed %d countries (%d skipped)", processed, skipped)

    total, top_countries = get_summary_stats(db_session)
    try:
        generate_summary_image(total, top_countries, refreshed_at)
    except (OSError, ValueError):
        logger.exception("Error generating summary image")

    return RefreshResult(
        total_countries=total,
        last_refreshed_at=refreshed_at,
        processed=processed,
        skipped=skipped,
    )


async def _run_refresh():
    init_db()
    db_session = SessionLocal()
    try:
        timeout = Config.request_timeout_ms / 1000
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await refresh_countries(db_session, client)
    finally:
        db_session.close()


def refresh_main():
    """Run one refresh from the command line; returns a process exit code."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    start_time = time.time()

    try:
        result = asyncio.run(_run_refresh())
    except DataSourceError as e:
        logger.error("Refresh aborted before any write: %s", e.detail)
        return 1
    except SQLAlchemyError:
        logger.exception("The refresh failed and changes were rolled back")
        return 1

    logger.info(
        "Refresh complete: %d countries stored, %d skipped, %d total, at %s (%.2fs)",
        result.processed,
        result.skipped,
        result.total_countries,
        result.last_refreshed_at.isoformat(),
        time.time() - start_time,
    )
    return 0


if __name__ == "__main__":
    sys.exit(refresh_main())

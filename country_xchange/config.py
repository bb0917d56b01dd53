import os
from urllib.parse import quote_plus

from dotenv import load_dotenv

load_dotenv()


def build_database_url(environ=os.environ):
    """Resolve the SQLAlchemy URL from DATABASE_URL or the DB_* variables."""
    database_url = environ.get("DATABASE_URL")
    if database_url:
        # Handle Railway/Heroku PostgreSQL URL format
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        return database_url

    host = environ.get("DB_HOST")
    if not host:
        return "sqlite:///./countries.db"

    user = environ.get("DB_USER", "root")
    password = quote_plus(environ.get("DB_PASSWORD", ""))
    port = environ.get("DB_PORT", "3306")
    name = environ.get("DB_NAME", "countries")
    return f"mysql+pymysql://{user}:{password}@{host}:{port}/{name}"


class Config:
    database_url = build_database_url()
    countries_api_url = os.getenv(
        "COUNTRIES_API_URL",
        "https://restcountries.com/v2/all?fields=name,capital,region,population,flag,currencies",
    )
    exchange_rate_api_url = os.getenv(
        "EXCHANGE_RATE_API_URL", "https://open.er-api.com/v6/latest/USD"
    )
    request_timeout_ms = int(os.getenv("REQUEST_TIMEOUT_MS", "10000"))
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    cache_dir = os.getenv("CACHE_DIR", "cache")

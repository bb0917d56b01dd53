"""FastAPI application entry point."""

import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

# Configure logging before importing other modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,
)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

from country_xchange import __version__  # noqa: E402
from country_xchange.api import api_router  # noqa: E402
from country_xchange.config import Config  # noqa: E402
from country_xchange.database import get_db, init_db  # noqa: E402
from country_xchange.exceptions import (  # noqa: E402
    DataSourceError,
    NotFoundError,
    ValidationError,
    data_source_error_handler,
    internal_error_handler,
    not_found_handler,
    validation_error_handler,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the cache directory on startup."""
    init_db()
    os.makedirs(Config.cache_dir, exist_ok=True)
    logger.info("Country Currency & Exchange API %s ready", __version__)
    yield


app = FastAPI(
    title="Country Currency & Exchange API",
    version=__version__,
    lifespan=lifespan,
)

# Register exception handlers
app.add_exception_handler(NotFoundError, not_found_handler)
app.add_exception_handler(ValidationError, validation_error_handler)
app.add_exception_handler(DataSourceError, data_source_error_handler)
app.add_exception_handler(SQLAlchemyError, internal_error_handler)
app.add_exception_handler(Exception, internal_error_handler)

app.include_router(api_router)


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint to verify database connection"""
    db_type = db.get_bind().dialect.name
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "database": {"status": "disconnected", "type": db_type},
        }

    return {"status": "healthy", "database": {"status": "connected", "type": db_type}}


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": "Country Currency & Exchange API",
        "endpoints": {
            "GET /health": "Health check and database status",
            "POST /countries/refresh": "Refresh country data",
            "GET /countries": "Get all countries (supports ?region=, ?currency=, ?sort=)",
            "GET /countries/image": "Get summary image",
            "GET /countries/{name}": "Get country by name",
            "DELETE /countries/{name}": "Delete country",
            "GET /status": "Get system status",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=Config.host, port=Config.port)

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from country_xchange.config import Config

logger = logging.getLogger(__name__)


def get_db_engine(database_url=None):
    """Create the SQLAlchemy engine for MySQL, PostgreSQL or SQLite."""
    database_url = database_url or Config.database_url

    if database_url.startswith("sqlite"):
        return create_engine(
            database_url, connect_args={"check_same_thread": False}
        )
    return create_engine(database_url, pool_pre_ping=True)


engine = get_db_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db(bind=None):
    """Create all tables that do not exist yet."""
    # Imported for its side effect of registering the models on Base
    from country_xchange import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """Dependency to provide a request-scoped DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db_session):
    """Commit on successful exit, roll back and re-raise on any error."""
    try:
        yield db_session
        db_session.commit()
    except Exception:
        db_session.rollback()
        logger.warning("Transaction failed, rolled back")
        raise

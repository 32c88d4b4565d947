import logging
import time
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings
from .errors import PersistenceError

logger = logging.getLogger(__name__)

DATABASE_URL = get_settings().database_url


def make_engine(url: str):
    kwargs = {"future": True}
    if url.startswith("sqlite"):
        # For SQLite, enable check_same_thread=False for multithreading in FastAPI
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # a single shared connection, otherwise each checkout sees an empty database
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    new_engine = create_engine(url, **kwargs)

    # Ensure SQLite enforces foreign keys
    if url.startswith("sqlite"):
        @event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Dependency that provides a database session per request."""
    db = SessionLocal()
    try:
        yield db
    except SQLAlchemyError:
        db.rollback()
        raise
    finally:
        db.close()


def commit(db: Session, what: str) -> None:
    """Commit, turning any database failure into PersistenceError."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Database error while trying to %s: %s", what, e)
        raise PersistenceError() from e


def init_db(bind=None, retries: int = 3, backoff: float = 1.0) -> None:
    """Probe the database and create missing tables.

    The probe is retried with a linear backoff; when the last attempt fails the
    error is re-raised so the process does not keep serving without a database.
    """
    # models must be imported so they are registered on Base.metadata
    from . import models  # noqa: F401

    bind = bind or engine
    attempts = max(1, retries)
    for attempt in range(1, attempts + 1):
        try:
            with bind.connect() as conn:
                conn.execute(text("SELECT 1"))
            break
        except SQLAlchemyError:
            if attempt == attempts:
                logger.exception("Database unreachable after %d attempts. Check DATABASE_URL.", attempts)
                raise
            logger.warning("Database not reachable (attempt %d/%d), retrying", attempt, attempts)
            time.sleep(backoff * attempt)

    Base.metadata.create_all(bind=bind)
    logger.info("Database ready at %s", bind.url.render_as_string(hide_password=True))

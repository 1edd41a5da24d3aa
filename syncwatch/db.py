"""
Database configuration and session helpers
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Create base class for models
Base = declarative_base()


def make_engine(database_url: str) -> Engine:
    # SQLite needs special connect args; Postgres does not
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    kwargs = {"future": True, "pool_pre_ping": True, "connect_args": connect_args}
    if not database_url.startswith("sqlite"):
        kwargs.update(pool_size=10, max_overflow=20)
    return create_engine(database_url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Initialize database tables"""
    # Make sure all models are imported so Base.metadata is populated
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured", extra={"component": "db"})


@contextmanager
def session_scope(factory: sessionmaker):
    s = factory()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()

"""Database session bootstrap.

The engine is created lazily from the configured database URL
(JOBPING_DB_URL / DATABASE_URL / config file) so importing this module never
opens a connection or requires a driver.
"""
from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def make_engine(url: str, echo: bool = False) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, future=True)
    return create_engine(url, echo=echo, pool_pre_ping=True, future=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, class_=Session)


def get_engine() -> Engine:
    global _engine, _session_factory
    if _engine is None:
        from libs.config import get_settings

        settings = get_settings()
        _engine = make_engine(settings.database.url, settings.database.echo)
        _session_factory = make_session_factory(_engine)
        logger.info(f"Database engine created for {_engine.url.render_as_string(hide_password=True)}")
    return _engine


def get_session_factory() -> sessionmaker:
    get_engine()
    return _session_factory


def configure_engine(engine: Engine) -> None:
    """Swap the process engine (CLI --db-url, tests)"""
    global _engine, _session_factory
    _engine = engine
    _session_factory = make_session_factory(engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """One unit of work: commit on success, rollback and re-raise on error"""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def get_session() -> Iterator[Session]:
    with session_scope(get_session_factory()) as session:
        yield session

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from claimaudit.core.settings import get_settings

_engine = None
_session_factory = None


def build_engine(database_url: str):
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        # One shared connection, otherwise every checkout sees an empty database.
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


def get_engine():
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(settings.database_url)
    return _engine


def get_session_factory():
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            class_=Session,
        )
    return _session_factory


def reset_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None

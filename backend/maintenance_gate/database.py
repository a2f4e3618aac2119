import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from maintenance_gate.config import settings

# SQLAlchemy QueuePool settings are process-local. Every request reads the
# settings table, so keep the pool small but allow a little overflow.
POOL_DEFAULTS = {
    "pool_size": 5,
    "max_overflow": 2,
    "pool_timeout": 5,
    "pool_recycle": 3600,
}

POOL_LIMITS = {
    "pool_size": (1, 20),
    "max_overflow": (0, 10),
    "pool_timeout": (2, 30),
    "pool_recycle": (300, 7200),
}


def _get_env_int(name: str, default: int) -> int:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default

    try:
        return int(str(raw_value).strip())
    except (TypeError, ValueError):
        return default


def _bounded_env_int(name: str, default: int, minimum: int, maximum: int) -> int:
    value = _get_env_int(name, default)
    if value < minimum:
        return minimum
    if value > maximum:
        return maximum
    return value


def _is_sqlite(url: str) -> bool:
    return str(url).strip().lower().startswith("sqlite")


def build_engine(url: str) -> Engine:
    """Create an engine for the given URL.

    SQLite does not support the QueuePool arguments used for server databases.
    In-memory SQLite gets a StaticPool so every session sees the same database.
    """
    if _is_sqlite(url):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=_bounded_env_int("DB_POOL_SIZE", POOL_DEFAULTS["pool_size"], *POOL_LIMITS["pool_size"]),
        max_overflow=_bounded_env_int("DB_MAX_OVERFLOW", POOL_DEFAULTS["max_overflow"], *POOL_LIMITS["max_overflow"]),
        pool_recycle=_bounded_env_int("DB_POOL_RECYCLE", POOL_DEFAULTS["pool_recycle"], *POOL_LIMITS["pool_recycle"]),
        pool_timeout=_bounded_env_int("DB_POOL_TIMEOUT", POOL_DEFAULTS["pool_timeout"], *POOL_LIMITS["pool_timeout"]),
    )


def create_session_factory(url: str) -> sessionmaker:
    """Build a session factory bound to a fresh engine for ``url``."""
    return sessionmaker(autocommit=False, autoflush=False, bind=build_engine(url))


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind: Engine) -> None:
    """Create all tables on ``bind`` (no-op for existing tables)."""
    # Import models so they are registered on Base.metadata.
    from maintenance_gate.models import setting, action_log  # noqa: F401

    Base.metadata.create_all(bind=bind)

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import URL

from ectd_packager.config import get_settings

DEFAULT_SQLITE_URL = "sqlite:///./ectd.db"


@lru_cache
def get_engine() -> Engine:
    """Create and cache the database engine."""
    settings = get_settings()

    # SQLite-specific settings
    if settings.database_url and settings.database_url.startswith("sqlite"):
        return create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            echo=False,
        )

    # PostgreSQL - use separate params to handle special chars in password
    if settings.db_host:
        url = URL.create(
            drivername="postgresql",
            username=settings.db_user,
            password=settings.db_password,
            host=settings.db_host,
            port=settings.db_port,
            database=settings.db_name,
        )
    elif settings.database_url:
        url = settings.database_url
    else:
        return create_engine(
            DEFAULT_SQLITE_URL,
            connect_args={"check_same_thread": False},
            echo=False,
        )

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        echo=False,
    )


def is_postgres() -> bool:
    """Check if the database is PostgreSQL."""
    return get_engine().dialect.name == "postgresql"

from .base import Base, JSONVariant
from .engine import get_engine, is_postgres
from .session import SessionLocal, get_db

__all__ = [
    "Base",
    "JSONVariant",
    "get_engine",
    "is_postgres",
    "SessionLocal",
    "get_db",
]

"""Database session management."""

from collections.abc import Generator
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from ectd_packager.database.engine import get_engine

# Session factory
SessionLocal = sessionmaker(
    bind=get_engine(),
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


def get_db() -> Generator[Session, Any, None]:
    """
    FastAPI dependency that yields a database session.

    Usage:
        @router.get("/studies/{study_id}/package")
        def get_readiness(study_id: str, db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

"""Database session management."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from meetapp_api.settings import get_settings

settings = get_settings()

_engine_kwargs = {"pool_pre_ping": True}
if not settings.database_url_computed.startswith("sqlite"):
    _engine_kwargs.update(pool_size=10, max_overflow=20)

engine = create_engine(settings.database_url_computed, **_engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

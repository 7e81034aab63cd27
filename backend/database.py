# File: backend/database.py

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings


def build_engine(database_url: str):
    """
    Create the SQLAlchemy engine.
    A bare 'sqlite://' URL is an in-memory database; StaticPool keeps a single
    connection so every session sees the same data.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url)


# 1. The process-wide engine
engine = build_engine(settings.database_url)

# 2. Session factory used by the API
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 3. Base class for all table models
Base = declarative_base()


def get_db():
    """
    Database dependency generator.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

"""
Base configuration for database models.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.src.curator.core.config import settings

# Database setup
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False}
    if "sqlite" in settings.database_url
    else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# Database dependency
def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Create tables
def create_tables(bind=None):
    """Create all database tables."""
    # Import all models to register them with SQLAlchemy
    from . import taxonomy, video, instructor, profile  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

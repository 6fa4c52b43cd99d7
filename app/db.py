"""
Database connection and setup
SQLAlchemy engine, session factory and FastAPI dependency
"""
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.models import Base
from config.settings import settings

logger = logging.getLogger("db")

DATABASE_URL = settings.database_url

# check_same_thread is only understood by SQLite
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    connect_args=_connect_args,
    echo=False  # Set to True to see SQL queries
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """
    Initialize database - create all tables
    Safe to call multiple times (won't recreate existing tables)
    """
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized at: {DATABASE_URL}")


def get_db():
    """
    Get database session - use in FastAPI dependencies
    Yields a session and closes it when done
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

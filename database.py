"""
SQLAlchemy database connection and session management.

This module provides:
- Database engine configuration (Azure SQL by default, any SQLAlchemy URL via DATABASE_URL)
- Session factory for dependency injection
- Connection utilities

Services never commit. A request's session commits once at the end, so every
billing operation (status flip, advance bills, credit update) is one unit.

Usage:
     from database import get_session, engine

     # In FastAPI routes:
     @router.get("/bills/{bill_id}")
     def get_bill(bill_id: int, db: Session = Depends(get_session)):
          ...
"""
import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from config import DATABASE_URL, SQL_ECHO

logger = logging.getLogger(__name__)


def build_engine(url: str = DATABASE_URL, echo: bool = SQL_ECHO):
     """Create an engine; SQLite (tests, local runs) gets a single shared connection."""
     if url.startswith("sqlite"):
          return create_engine(
               url,
               connect_args={"check_same_thread": False},
               poolclass=StaticPool,
               echo=echo,
          )
     return create_engine(
          url,
          poolclass=QueuePool,
          pool_size=5,
          max_overflow=10,
          pool_timeout=30,
          pool_recycle=1800,  # Recycle connections after 30 minutes
          echo=echo,
     )


engine = build_engine()

SessionLocal = sessionmaker(
     bind=engine,
     autocommit=False,
     autoflush=False,
     expire_on_commit=False,
)


def get_session() -> Generator[Session, None, None]:
     """
     FastAPI dependency that provides a database session.

     Commits when the route returns, rolls back if it raised.

     Yields:
          Session: SQLAlchemy database session
     """
     session = SessionLocal()
     try:
          yield session
          session.commit()
     except Exception:
          session.rollback()
          raise
     finally:
          session.close()


@contextmanager
def get_session_context() -> Generator[Session, None, None]:
     """
     Context manager for database sessions (scheduled jobs, scripts).

     Usage:
          with get_session_context() as db:
               generate_scheduled_rent_bills(db)
     """
     session = SessionLocal()
     try:
          yield session
          session.commit()
     except Exception:
          session.rollback()
          raise
     finally:
          session.close()


def init_db() -> None:
     """
     Initialize database tables.

     Creates all tables defined in the models if they don't exist.
     For production, use Alembic migrations instead.
     """
     from models import Base
     Base.metadata.create_all(bind=engine)


def check_connection() -> bool:
     """
     Test database connectivity.

     Returns:
          bool: True if connection successful, False otherwise
     """
     try:
          with engine.connect() as conn:
               conn.execute(text("SELECT 1"))
          return True
     except Exception:
          logger.exception("Database connection failed")
          return False

"""
Database Configuration
"""
import logging
from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Base model
Base = declarative_base()


class Database:
    """
    Owns the engine (and its bounded connection pool) and the session factory.

    Built once by the application factory and kept on ``app.state``;
    ``connect``/``disconnect`` are driven by the FastAPI lifespan.
    """

    def __init__(self, url: str, pool_size: int = 10, connect_timeout: int = 10, echo: bool = False):
        self.url = url
        engine_kwargs = {"echo": echo, "pool_pre_ping": True}

        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url:
                # Keep a single connection so the in-memory schema survives
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_size"] = pool_size
            engine_kwargs["connect_args"] = {"connect_timeout": connect_timeout}

        self.engine = create_engine(url, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self._connected = False

    def connect(self):
        """Create tables and verify the database answers"""
        # Import models so they are registered with Base
        from bizpulse import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        self._connected = True
        logger.info("Database connected")

    def disconnect(self):
        if not self._connected:
            return
        self.engine.dispose()
        self._connected = False
        logger.info("Database disconnected")

    def is_connected(self) -> bool:
        if not self._connected:
            return False
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    def session(self) -> Session:
        return self.SessionLocal()


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.
    Rolls back on error and always closes the session.
    """
    db = request.app.state.db.session()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

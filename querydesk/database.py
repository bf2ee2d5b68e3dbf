"""
Config database initialisation and session management
"""
import os
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session as SQLAlchemySession
from sqlalchemy.pool import QueuePool, StaticPool
from contextlib import contextmanager
from typing import Generator, Optional

from .models.base import Base
from .models import (  # noqa: F401  registers tables on Base.metadata
    DatabaseConfig,
    PermissionGrant,
    ScheduledReport,
)
from .utils.logger import get_logger

logger = get_logger(__name__)


class Database:
    """Config database holding connections, grants and schedules"""

    def __init__(self, db_url: Optional[str] = None):
        """
        Create the engine and session factory

        Args:
            db_url: SQLAlchemy URL; defaults to a SQLite file at CONFIG_DB_PATH
        """
        if db_url is None:
            project_root = Path(__file__).resolve().parent.parent
            default_db_path = project_root / "data" / "config.db"

            db_path = os.getenv("CONFIG_DB_PATH", str(default_db_path))
            os.makedirs(os.path.dirname(db_path), exist_ok=True)
            db_url = f"sqlite:///{db_path}"

        pool_config = {
            "poolclass": QueuePool,
            "pool_size": 20,
            "max_overflow": 40,
            "pool_timeout": 30,
            "pool_recycle": 3600,
            "pool_pre_ping": True,
            "echo": False,
        }

        if db_url.startswith("sqlite"):
            pool_config["connect_args"] = {"check_same_thread": False}
            if db_url in ("sqlite://", "sqlite:///:memory:"):
                # in-memory databases only exist on a single connection
                pool_config = {
                    "poolclass": StaticPool,
                    "connect_args": {"check_same_thread": False},
                }

        self.engine = create_engine(db_url, **pool_config)

        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
            expire_on_commit=False
        )

    def create_tables(self):
        """Create all tables"""
        Base.metadata.create_all(bind=self.engine)

    def drop_tables(self):
        """Drop all tables (use with care)"""
        Base.metadata.drop_all(bind=self.engine)

    @contextmanager
    def get_session(self) -> Generator[SQLAlchemySession, None, None]:
        """
        Session context manager: commits on success, rolls back on error

        Yields:
            SQLAlchemy session
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


_db_instance = None


def get_database() -> Database:
    """Process-wide config database"""
    global _db_instance
    if _db_instance is None:
        _db_instance = Database()
    return _db_instance


def set_database(database: Optional[Database]) -> None:
    """Replace the process-wide config database (tests, alternate deployments)"""
    global _db_instance
    _db_instance = database


def init_database():
    """Create all tables on the config database"""
    db = get_database()
    db.create_tables()
    logger.info("Config database initialised")


if __name__ == "__main__":
    init_database()

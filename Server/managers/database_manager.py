"""
LabQueue Server - Database Manager

This module manages the database connection, schema creation and
workstation seeding.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from models.database import Base, Resource, ResourceState

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Manages database connection, initialization, and sessions
    """

    def __init__(self, db_path: str = "database/labqueue.db", db_url: Optional[str] = None):
        """
        Initialize database manager

        Args:
            db_path: Path to SQLite database file
            db_url: Full SQLAlchemy URL; overrides db_path (e.g. a PostgreSQL server)
        """
        self.db_path = db_path

        if db_url is None:
            # Ensure database directory exists
            db_dir = Path(db_path).parent
            if db_dir and str(db_dir) != '.':
                db_dir.mkdir(parents=True, exist_ok=True)
            db_url = f"sqlite:///{db_path}"

        self.db_url = db_url

        if db_url.startswith("sqlite"):
            # Sessions are used from FastAPI's worker threads
            self.engine = create_engine(db_url, echo=False, connect_args={"check_same_thread": False})
            event.listen(self.engine, "connect", self._EnableSqliteForeignKeys)
        else:
            self.engine = create_engine(db_url, echo=False)

        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, expire_on_commit=False)

    @staticmethod
    def _EnableSqliteForeignKeys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    def InitializeDatabase(self) -> None:
        """
        Create all tables if they don't exist
        """
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Database schema ready at {self.db_url}")

    def SeedResources(self, names: List[str], location: Optional[str] = None) -> List[Resource]:
        """
        Add free workstations that don't already exist (matched by display name)

        Args:
            names: Display names of the workstations
            location: Optional room or area for all of them

        Returns:
            list: The resources that were created
        """
        session = self.SessionLocal()
        created = []

        try:
            existing = {name for (name,) in session.query(Resource.display_name).all()}
            now = datetime.now(timezone.utc)

            for name in names:
                if name in existing:
                    continue
                resource = Resource(
                    display_name=name,
                    location=location,
                    state=ResourceState.FREE,
                    created_at_utc=now
                )
                session.add(resource)
                created.append(resource)
                logger.info(f"Added workstation: {name}")

            session.commit()

        except Exception as e:
            session.rollback()
            raise e
        finally:
            session.close()

        return created

    def GetSession(self):
        """
        Get a new database session

        Returns:
            Session: SQLAlchemy session
        """
        return self.SessionLocal()

    def Dispose(self) -> None:
        """Close all pooled connections"""
        self.engine.dispose()

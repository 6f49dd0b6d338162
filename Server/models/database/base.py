"""
LabQueue Server - Database Base

Shared declarative base for all SQLAlchemy models, plus the UTC timestamp
column type used by every model.
"""

from datetime import timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

# Create the shared declarative base
Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """
    DateTime column stored as naive UTC and loaded as timezone-aware UTC

    SQLite drops tzinfo, so values read back would otherwise be naive and
    could not be compared with the clock's aware timestamps.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

"""
LabQueue Server - Resource Database Model

A shared workstation that students queue for and use.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String

from models.database.base import Base, UTCDateTime


class ResourceState:
    """Lifecycle states of a resource"""
    FREE = "free"
    HELD = "held"  # Reserved for an Assigned queue entry pending check-in
    OCCUPIED = "occupied"  # In use by an Active/Paused usage session

    ALL = (FREE, HELD, OCCUPIED)


class Resource(Base):
    """
    Resources table - one row per workstation
    Only the resource pool changes the state column.
    """
    __tablename__ = "resources"

    resource_id = Column(Integer, primary_key=True, autoincrement=True)
    display_name = Column(String, nullable=False)
    location = Column(String, nullable=True)  # Row / room label
    state = Column(String, nullable=False, default=ResourceState.FREE)
    created_at_utc = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

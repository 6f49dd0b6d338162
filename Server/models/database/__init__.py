"""
LabQueue Server - Database Models Package

This package contains all SQLAlchemy database model definitions.
All models share a common declarative base for proper table relationships.
"""

# Import Base first
from models.database.base import Base, UTCDateTime

# Import all models
from models.database.resource import Resource, ResourceState
from models.database.queue_entry import QueueEntry, QueueEntryState
from models.database.usage_session import UsageSession, UsageSessionState

# Export all models and Base
__all__ = [
    'Base',
    'UTCDateTime',
    'Resource',
    'ResourceState',
    'QueueEntry',
    'QueueEntryState',
    'UsageSession',
    'UsageSessionState',
]

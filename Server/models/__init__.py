"""
LabQueue Server - Models Package

This package contains all data models for the LabQueue server:
- database: SQLAlchemy database models
- api: API endpoint Pydantic models
- infrastructure: Dataclass models for effects passed between components
"""

# Re-export all models for convenient importing
from models.database import *
from models.api import *
from models.infrastructure import *

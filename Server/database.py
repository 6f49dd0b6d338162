"""
LabQueue Server - Database Module

This module exports the global db_manager and lab_service instances for use
across the application.
"""

from managers.database_manager import DatabaseManager
from lab_service import LabService

# Global instances
# Initialized in server.py lifespan handler
db_manager: DatabaseManager = None
lab_service: LabService = None


def GetLabService() -> LabService:
    """
    FastAPI dependency returning the shared LabService

    Returns:
        LabService: The service created at startup
    """
    if lab_service is None:
        raise RuntimeError("LabService is not initialized")
    return lab_service

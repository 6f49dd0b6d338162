"""
LabQueue Server - Managers Package

This package contains the database manager.
"""

from managers.database_manager import DatabaseManager

__all__ = ['DatabaseManager']

"""
LabQueue Server - Conflict Error

Raised when a business rule collides with existing state.
"""

from exceptions.labqueue_error import LabQueueError


class ConflictError(LabQueueError):
    """
    Exception for business-rule collisions

    The kind is always one of the class constants below.
    """
    ALREADY_QUEUED = "AlreadyQueued"
    HAS_ACTIVE_SESSION = "HasActiveSession"
    RESOURCE_UNAVAILABLE = "ResourceUnavailable"
    ALREADY_ACTIVE_SESSION = "AlreadyActiveSession"

    kind = "Conflict"

"""
LabQueue Server - Not Found Error

Raised for unknown entity ids or a missing active queue entry.
"""

from exceptions.labqueue_error import LabQueueError


class NotFoundError(LabQueueError):
    """Exception for unknown entities."""
    kind = "NotFound"

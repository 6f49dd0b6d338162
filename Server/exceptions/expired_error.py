"""
LabQueue Server - Expired Error

Raised when check-in is attempted after the hold window has passed.
"""

from exceptions.labqueue_error import LabQueueError


class ExpiredError(LabQueueError):
    """Exception for check-in after the hold window."""
    kind = "Expired"

"""
LabQueue Server - State Error

Raised when an operation is invalid for the entity's lifecycle state.
"""

from exceptions.labqueue_error import LabQueueError


class StateError(LabQueueError):
    """Exception for operations invalid in the current state."""
    kind = "StateError"

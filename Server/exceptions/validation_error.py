"""
LabQueue Server - Validation Error

Raised for malformed input, before any state is touched.
"""

from exceptions.labqueue_error import LabQueueError


class ValidationError(LabQueueError):
    """Exception for malformed input."""
    kind = "Validation"

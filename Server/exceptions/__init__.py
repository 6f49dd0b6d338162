"""
LabQueue Server - Exceptions Package

Contains the typed, expected outcomes raised by the queue and usage engine.
Every class carries a stable error kind plus a human-readable reason.
"""

from exceptions.labqueue_error import LabQueueError
from exceptions.validation_error import ValidationError
from exceptions.conflict_error import ConflictError
from exceptions.not_found_error import NotFoundError
from exceptions.state_error import StateError
from exceptions.expired_error import ExpiredError

__all__ = [
    'LabQueueError',
    'ValidationError',
    'ConflictError',
    'NotFoundError',
    'StateError',
    'ExpiredError',
]

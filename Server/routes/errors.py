"""
LabQueue Server - Error Translation

Maps typed engine outcomes onto HTTP responses.
"""

import logging
from fastapi import HTTPException, status

from exceptions import (
    LabQueueError, ValidationError, ConflictError,
    NotFoundError, StateError, ExpiredError
)


# Create logger
logger = logging.getLogger(__name__)

# Status code per error class
ERROR_STATUS_CODES = {
    ValidationError: 422,
    ConflictError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StateError: status.HTTP_400_BAD_REQUEST,
    ExpiredError: status.HTTP_410_GONE,
}


def ToHttpException(error: LabQueueError, operation: str) -> HTTPException:
    """
    Translate a rejected operation into an HTTPException

    Args:
        error: The typed engine outcome
        operation: Name of the rejected operation, for the log

    Returns:
        HTTPException with a {"kind", "reason"} detail
    """
    status_code = status.HTTP_400_BAD_REQUEST
    for error_class, code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_class):
            status_code = code
            break

    logger.warning(f"{operation} rejected ({error.kind}): {error.reason}")
    return HTTPException(status_code=status_code, detail=error.ToDict())

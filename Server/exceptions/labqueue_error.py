"""
LabQueue Server - Base Error

Base exception class for all rejected engine operations.
"""


class LabQueueError(Exception):
    """
    Base exception for expected, typed engine outcomes

    Attributes:
        kind: Stable error kind (e.g. 'AlreadyQueued', 'NotFound')
        reason: Human-readable explanation
    """
    kind = "LabQueueError"

    def __init__(self, reason: str, kind: str = None):
        super().__init__(reason)
        self.reason = reason
        if kind is not None:
            self.kind = kind

    def ToDict(self) -> dict:
        """Return the error as a {kind, reason} dictionary"""
        return {"kind": self.kind, "reason": self.reason}

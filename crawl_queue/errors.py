"""Error types raised by the crawl queue."""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Kinds of failure a queue operation can report."""

    DUPLICATE_RESOURCE = "duplicate_resource"
    NOT_FOUND = "not_found"
    INVALID_STATISTIC = "invalid_statistic"
    INVALID_IDENTIFIER = "invalid_identifier"
    STORE_UNAVAILABLE = "store_unavailable"
    UNEXPECTED_STATE = "unexpected_state"


class QueueError(Exception):
    """Error raised by queue operations.

    Check ``kind`` to tell failures apart; ``message`` is for humans only.
    """

    def __init__(self, kind: ErrorKind, message: Optional[str] = None):
        self.kind = kind
        self.message = message or kind.value.replace("_", " ")
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"QueueError({self.kind.name}, {self.message!r})"

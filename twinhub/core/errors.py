"""Error kinds raised by the registries and stores.

Every operation either succeeds or raises a ``TwinHubError`` whose ``kind``
is one member of the closed ``ErrorKind`` enumeration. Callers at the
transport boundary match on ``kind``, never on message text.
"""

import functools
import logging
from enum import Enum

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID_REFERENCE = "invalid_reference"
    INVALID_ARGUMENT = "invalid_argument"
    INTERNAL = "internal"
    CANCELLED = "cancelled"


class TwinHubError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TwinHubError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(TwinHubError):
    kind = ErrorKind.CONFLICT


class InvalidReferenceError(TwinHubError):
    kind = ErrorKind.INVALID_REFERENCE


class InvalidArgumentError(TwinHubError):
    kind = ErrorKind.INVALID_ARGUMENT


class InternalError(TwinHubError):
    kind = ErrorKind.INTERNAL


class QueryCancelledError(TwinHubError):
    """The call ran out of its deadline before producing a result."""

    kind = ErrorKind.CANCELLED


def storage_operation(func):
    """Wrap Redis failures of a store coroutine into ``InternalError``."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except RedisError as exc:
            logger.error("Storage failure in %s: %s", func.__qualname__, exc)
            raise InternalError(f"storage failure: {exc}") from exc

    return wrapper

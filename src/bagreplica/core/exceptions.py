"""
Error types raised by the descriptor codec, the store adapters and the transfer engine.
"""

from typing import Optional


class BagReplicaError(Exception):
    """Base class for all bagreplica errors."""


class MalformedDescriptor(BagReplicaError, ValueError):
    """A descriptor document is structurally invalid or misses a required field."""


class StoreError(BagReplicaError):
    """A replica store operation failed."""


class TransientStoreFailure(StoreError):
    """A single store operation failed but may succeed when repeated."""


class ContentNotFound(StoreError):
    """The store holds no content under the requested key."""

    def __init__(self, container: str, key: str):
        super().__init__(f"No content '{key}' in container '{container}'")
        self.container = container
        self.key = key


class TransferExhausted(BagReplicaError, OSError):
    """
    An upload gave up after using its whole retry budget.

    The local bag file is left in place so the job can be inspected or re-queued.
    """

    def __init__(self, container: str, key: str, attempts: int, last_error: Optional[BaseException] = None):
        message = f"Transfer of '{key}' to container '{container}' failed after {attempts} attempt(s)"
        if last_error is not None:
            message += f": {last_error}"
        super().__init__(message)
        self.container = container
        self.key = key
        self.attempts = attempts
        self.last_error = last_error


class TransferCancelled(TransferExhausted):
    """An upload was cancelled between attempts."""

"""
Transfer engine: moves packaged bags to and from a replica store.

An upload runs through these steps:
1. CheckExisting - ask the store for the key's properties. Not found means the
   write creates the object; found means it overwrites it. If the store cannot
   answer, the engine assumes create and carries on.
2. Write - send the whole file. A failed write is repeated after a backoff
   delay until max_retries extra attempts have been used.
3. Committed - the local file is deleted and a TransferResult returned.
   Failed - the local file stays where it is and TransferExhausted is raised.

Attempts for one upload never overlap. The engine keeps no state between calls,
so callers must not upload the same key from two threads at once.
"""

import logging
import random
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from pydantic import BaseModel, Field

from bagreplica.core.exceptions import ContentNotFound, StoreError, TransferCancelled, TransferExhausted
from bagreplica.core.utils import file_checksum, remove_quietly
from bagreplica.replication.store import CHECKSUM, SIZE, ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "application/zip"


class RetryPolicy(BaseModel):
    """How many times to repeat a failed write and how long to wait in between."""
    max_retries: int = Field(default=3, ge=0)
    backoff_base_ms: int = Field(default=1000, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    backoff_max_ms: int = Field(default=30000, ge=0)
    jitter_ms: int = Field(default=0, ge=0)

    model_config = {"frozen": True}

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry: int) -> float:
        """
        Seconds to wait before the given retry (1 for the first retry).

        Exponential in the retry number, capped at backoff_max_ms, plus up to
        jitter_ms of random spread.
        """
        retry = max(1, retry)
        delay_ms = self.backoff_base_ms * (self.backoff_multiplier ** (retry - 1))
        delay_ms = min(max(self.backoff_max_ms, self.backoff_base_ms), delay_ms)
        if self.jitter_ms:
            delay_ms += random.uniform(0, self.jitter_ms)
        return delay_ms / 1000.0


class TransferMode(str, Enum):
    """What an upload did in the store."""
    CREATE = "create"
    OVERWRITE = "overwrite"
    UNCHANGED = "unchanged"


class TransferResult(BaseModel):
    """Outcome of a committed upload."""
    container: str
    key: str
    mode: TransferMode
    size: int
    checksum: str
    attempts: int
    content_id: Optional[str] = None
    previous_size: Optional[int] = None
    # False when the store could not say whether the key existed and create was assumed
    existence_checked: bool = True

    model_config = {"frozen": True}


class TransferEngine:
    """Uploads and downloads bag files through an ObjectStore."""

    def __init__(
        self,
        store: ObjectStore,
        retry_policy: Optional[RetryPolicy] = None,
        media_type: str = DEFAULT_MEDIA_TYPE,
        skip_unchanged: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            store: Replica store to talk to
            retry_policy: Retry bound and backoff; RetryPolicy() when None
            media_type: Media type declared for uploaded bags
            skip_unchanged: Treat a remote object with the same checksum as
                already replicated and skip the write
            sleep: Called with the backoff delay in seconds between attempts
        """
        self.store = store
        self.retry_policy = retry_policy or RetryPolicy()
        self.media_type = media_type
        self.skip_unchanged = skip_unchanged
        self._sleep = sleep

    def upload(
        self,
        container: str,
        path: Union[str, Path],
        key: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TransferResult:
        """
        Replicate a local bag file and delete it once the store has it.

        Args:
            container: Store container to write into
            path: Local bag file; owned by this call until it returns
            key: Content key, the file name when None
            cancel_event: When set, no further attempt is started

        Returns:
            TransferResult describing the committed write

        Raises:
            TransferExhausted: If every attempt failed (the file is kept)
            TransferCancelled: If cancelled between attempts (the file is kept)
        """
        path = Path(path)
        key = key or path.name
        size = path.stat().st_size
        checksum = file_checksum(path)

        mode, previous_size, checked = self._check_existing(container, key, checksum)
        if mode is TransferMode.UNCHANGED:
            logger.info(f"{container}/{key} already holds checksum {checksum}; skipping upload")
            self._cleanup(path)
            return TransferResult(
                container=container,
                key=key,
                mode=mode,
                size=size,
                checksum=checksum,
                attempts=0,
                previous_size=previous_size,
                existence_checked=checked,
            )

        content_id, attempts = self._write(container, key, path, size, checksum, cancel_event)
        logger.info(f"Replicated {path.name} to {container}/{key} ({mode.value}, {size} bytes, {attempts} attempt(s))")
        self._cleanup(path)
        return TransferResult(
            container=container,
            key=key,
            mode=mode,
            size=size,
            checksum=checksum,
            attempts=attempts,
            content_id=content_id,
            previous_size=previous_size,
            existence_checked=checked,
        )

    def download(self, container: str, key: str) -> bytes:
        """
        Fetch a replica's bytes in a single attempt.

        Raises:
            ContentNotFound: If the store has no such key
            StoreError: If the read failed
        """
        data = self.store.read(container, key)
        logger.info(f"Fetched {container}/{key} ({len(data)} bytes)")
        return data

    def _check_existing(self, container: str, key: str, checksum: str) -> Tuple[TransferMode, Optional[int], bool]:
        try:
            properties = self.store.get_properties(container, key)
        except ContentNotFound:
            logger.debug(f"{container}/{key} not in store; creating")
            return TransferMode.CREATE, None, True
        except (StoreError, OSError) as e:
            logger.warning(f"Could not check {container}/{key} ({e}); attempting create")
            return TransferMode.CREATE, None, False

        previous_size = properties.get(SIZE)
        previous_size = int(previous_size) if previous_size and previous_size.isdigit() else None
        remote_checksum = properties.get(CHECKSUM)
        if self.skip_unchanged and remote_checksum and remote_checksum.lower() == checksum:
            return TransferMode.UNCHANGED, previous_size, True
        logger.debug(f"{container}/{key} exists; overwriting")
        return TransferMode.OVERWRITE, previous_size, True

    def _write(
        self,
        container: str,
        key: str,
        path: Path,
        size: int,
        checksum: str,
        cancel_event: Optional[threading.Event],
    ) -> Tuple[str, int]:
        max_attempts = self.retry_policy.max_attempts
        attempts = 0
        last_error = None
        while True:
            attempts += 1
            try:
                with open(path, "rb") as content:
                    content_id = self.store.write(container, key, content, size, self.media_type, checksum)
                return content_id, attempts
            except (StoreError, OSError) as e:
                last_error = e

            if attempts >= max_attempts:
                logger.error(f"Giving up on {container}/{key} after {attempts} attempt(s): {last_error}")
                raise TransferExhausted(container, key, attempts, last_error) from last_error

            delay = self.retry_policy.delay_for(attempts)
            logger.warning(
                f"Write of {container}/{key} failed (attempt {attempts} of {max_attempts}): {last_error}; "
                f"retrying in {delay:.2f}s"
            )
            if self._cancelled(cancel_event):
                raise TransferCancelled(container, key, attempts, last_error) from last_error
            self._sleep(delay)
            if self._cancelled(cancel_event):
                raise TransferCancelled(container, key, attempts, last_error) from last_error

    @staticmethod
    def _cancelled(cancel_event: Optional[threading.Event]) -> bool:
        return cancel_event is not None and cancel_event.is_set()

    @staticmethod
    def _cleanup(path: Path) -> None:
        if remove_quietly(path):
            logger.debug(f"Removed local bag {path}")

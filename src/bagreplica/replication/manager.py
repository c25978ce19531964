# bagreplica/src/bagreplica/replication/manager.py

import io
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from bagreplica.core.config import Settings
from bagreplica.core.exceptions import ContentNotFound
from bagreplica.core.utils import bytes_checksum
from bagreplica.replication import odometer as odo
from bagreplica.replication.duracloud_store import DuraCloudObjectStore
from bagreplica.replication.local_store import LocalObjectStore
from bagreplica.replication.odometer import Odometer
from bagreplica.replication.store import CHECKSUM, MODIFIED, SIZE, ObjectStore
from bagreplica.replication.transfer import TransferEngine, TransferMode, TransferResult

logger = logging.getLogger(__name__)

# Attribute names accepted by ReplicaManager.attribute
ATTRIBUTES = {
    "checksum": CHECKSUM,
    "sizebytes": SIZE,
    "modified": MODIFIED,
}


def get_store(settings: Settings) -> ObjectStore:
    """Create the replica store named by settings.store_backend."""
    backend = settings.store_backend.lower()
    if backend == "local":
        return LocalObjectStore(settings.store_dir)
    elif backend == "duracloud":
        return DuraCloudObjectStore(
            settings.duracloud_url,
            username=settings.duracloud_username,
            password=settings.get_duracloud_password(),
            store_id=settings.duracloud_store_id,
            timeout=settings.request_timeout,
        )
    raise ValueError(f"Unknown replica store backend: {settings.store_backend}")


class ReplicaManager:
    """
    Entry point for replication tasks.

    Wires the configured store, the transfer engine and the odometer together and
    offers the operations a replication task performs on one bag at a time.
    Several tasks may share one manager from different threads; odometer updates
    are serialized.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[ObjectStore] = None,
        odometer: Optional[Odometer] = None,
    ):
        if settings is None:
            from bagreplica.core.config import settings as default_settings
            settings = default_settings
        self.settings = settings
        self.store = store or get_store(settings)
        self.engine = TransferEngine(
            self.store,
            settings.retry_policy(),
            media_type=settings.media_type,
            skip_unchanged=settings.skip_unchanged,
        )
        self._odometer = odometer or Odometer(settings.odometer_dir)
        self._odometer_lock = threading.Lock()

    def _container(self, container: Optional[str]) -> str:
        return container or self.settings.store_group

    def transfer_bag(
        self,
        path: Union[str, Path],
        container: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TransferResult:
        """
        Upload a bag file; the file is deleted once the store confirms it.

        Raises:
            TransferExhausted: If the upload gave up (the file is kept)
        """
        result = self.engine.upload(self._container(container), path, cancel_event=cancel_event)
        if result.mode is not TransferMode.UNCHANGED:
            with self._odometer_lock:
                # an assumed create may have replaced an object already counted
                if result.mode is TransferMode.CREATE and result.existence_checked:
                    self._odometer.adjust(odo.COUNT, 1)
                self._odometer.adjust(odo.SIZE, result.size - (result.previous_size or 0))
                self._odometer.adjust(odo.UPLOADED, result.size)
                self._odometer.save()
        return result

    def fetch_bag(self, key: str, dest: Union[str, Path], container: Optional[str] = None) -> Optional[int]:
        """
        Download a replica into dest.

        Returns:
            Number of bytes written, None if the store has no such replica
        """
        container = self._container(container)
        try:
            data = self.engine.download(container, key)
        except ContentNotFound:
            logger.info(f"No replica {container}/{key} to fetch")
            return None
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
        with self._odometer_lock:
            self._odometer.adjust(odo.DOWNLOADED, len(data))
            self._odometer.save()
        return len(data)

    def exists(self, key: str, container: Optional[str] = None) -> bool:
        try:
            self.store.get_properties(self._container(container), key)
        except ContentNotFound:
            return False
        return True

    def attribute(self, key: str, name: str, container: Optional[str] = None) -> Optional[str]:
        """
        Look up one property of a replica: 'checksum', 'sizebytes' or 'modified'.

        Returns:
            The value, or None for an unknown name or a missing replica
        """
        prop = ATTRIBUTES.get(name)
        if prop is None:
            return None
        try:
            properties = self.store.get_properties(self._container(container), key)
        except ContentNotFound:
            return None
        return properties.get(prop)

    def remove_bag(self, key: str, container: Optional[str] = None) -> Optional[int]:
        """
        Delete a replica.

        Returns:
            Bytes the replica used, None if it did not exist
        """
        container = self._container(container)
        try:
            size = int(self.store.get_properties(container, key).get(SIZE) or 0)
            self.store.delete(container, key)
        except ContentNotFound:
            return None
        logger.info(f"Removed replica {container}/{key} ({size} bytes)")
        with self._odometer_lock:
            self._odometer.adjust(odo.COUNT, -1)
            self._odometer.adjust(odo.SIZE, -size)
            self._odometer.save()
        return size

    def move_bag(self, key: str, src_container: str, dest_container: str) -> Optional[int]:
        """
        Move a replica between containers.

        Returns:
            Bytes moved, None if the source did not exist
        """
        try:
            data = self.store.read(src_container, key)
        except ContentNotFound:
            return None
        self.store.write(
            dest_container, key, io.BytesIO(data), len(data), self.settings.media_type, bytes_checksum(data)
        )
        self.store.delete(src_container, key)
        logger.info(f"Moved replica {key} from {src_container} to {dest_container}")
        return len(data)

    def trash_bag(self, key: str) -> Optional[int]:
        """Move a replica from the store group to the delete group."""
        return self.move_bag(key, self.settings.store_group, self.settings.delete_group)

    def odometer(self) -> Dict[str, int]:
        with self._odometer_lock:
            return self._odometer.as_dict()

from abc import ABC, abstractmethod
from typing import BinaryIO, Dict

# Property names every store reports where it knows them
CHECKSUM = "checksum"
SIZE = "size"
MODIFIED = "modified"
MEDIA_TYPE = "media_type"


class ObjectStore(ABC):
    """
    The operations the replication code needs from a replica store.

    Objects live under a key inside a named container (a bucket, space or group).
    Every call blocks until the store answers. Implementations translate their
    own failures into ContentNotFound when the key does not exist and into
    StoreError (usually TransientStoreFailure) for anything else.
    """

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def get_properties(self, container: str, key: str) -> Dict[str, str]:
        """
        Return the stored object's properties (see CHECKSUM, SIZE, MODIFIED, MEDIA_TYPE).

        Raises:
            ContentNotFound: If nothing is stored under key
            StoreError: If the store could not be queried
        """

    @abstractmethod
    def write(self, container: str, key: str, content: BinaryIO, length: int, media_type: str, checksum: str) -> str:
        """
        Store content under key, replacing whatever is there.

        Args:
            content: Readable binary stream positioned at the start
            length: Number of bytes in content
            media_type: Declared media type of content
            checksum: Hex MD5 of content, for the store to verify

        Returns:
            Identifier the store assigned to the content

        Raises:
            StoreError: If the write was not confirmed
        """

    @abstractmethod
    def read(self, container: str, key: str) -> bytes:
        """
        Return the stored bytes.

        Raises:
            ContentNotFound: If nothing is stored under key
            StoreError: If the read failed
        """

    @abstractmethod
    def delete(self, container: str, key: str) -> None:
        """
        Remove the stored object.

        Raises:
            ContentNotFound: If nothing is stored under key
            StoreError: If the delete failed
        """

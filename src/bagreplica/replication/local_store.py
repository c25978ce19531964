"""
Replica store on a locally mounted filesystem: one directory per container.
"""

import hashlib
import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Dict, Union

from bagreplica.core.exceptions import ContentNotFound, TransientStoreFailure
from bagreplica.core.utils import file_checksum
from bagreplica.replication.store import CHECKSUM, MODIFIED, SIZE, ObjectStore

logger = logging.getLogger(__name__)


class _HashingReader:
    """Wrap a stream so everything read from it is also digested."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self.digest = hashlib.md5()
        self.count = 0

    def read(self, size: int = -1) -> bytes:
        block = self._stream.read(size)
        self.digest.update(block)
        self.count += len(block)
        return block


class LocalObjectStore(ObjectStore):
    """
    Stores each object as a plain file at <root>/<container>/<key>.

    Writes land in a temporary file in the same directory and replace the
    target only once length and checksum match, so a reader never sees a
    partial object.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _path(self, container: str, key: str) -> Path:
        for part in (container, key):
            if not part or part in (".", "..") or "/" in part or "\\" in part:
                raise ValueError(f"Invalid container or key: '{part}'")
        return self.root / container / key

    def get_properties(self, container: str, key: str) -> Dict[str, str]:
        path = self._path(container, key)
        try:
            stat = path.stat()
            checksum = file_checksum(path)
        except FileNotFoundError:
            raise ContentNotFound(container, key)
        except OSError as e:
            raise TransientStoreFailure(f"Cannot inspect {path}: {e}") from e
        modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        return {
            CHECKSUM: checksum,
            SIZE: str(stat.st_size),
            MODIFIED: modified.isoformat(),
        }

    def write(self, container: str, key: str, content: BinaryIO, length: int, media_type: str, checksum: str) -> str:
        path = self._path(container, key)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=path.parent, prefix=f".{key}.", delete=False) as tmp:
                tmp_name = tmp.name
                reader = _HashingReader(content)
                shutil.copyfileobj(reader, tmp)
            written = reader.digest.hexdigest()
            if reader.count != length or written != checksum.lower():
                raise TransientStoreFailure(
                    f"Content for {container}/{key} arrived as {reader.count} bytes md5 {written}, "
                    f"expected {length} bytes md5 {checksum}"
                )
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise TransientStoreFailure(f"Cannot write {path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.remove(tmp_name)
        logger.debug(f"Stored {length} bytes at {path}")
        return written

    def read(self, container: str, key: str) -> bytes:
        path = self._path(container, key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise ContentNotFound(container, key)
        except OSError as e:
            raise TransientStoreFailure(f"Cannot read {path}: {e}") from e

    def delete(self, container: str, key: str) -> None:
        path = self._path(container, key)
        try:
            path.unlink()
        except FileNotFoundError:
            raise ContentNotFound(container, key)
        except OSError as e:
            raise TransientStoreFailure(f"Cannot delete {path}: {e}") from e

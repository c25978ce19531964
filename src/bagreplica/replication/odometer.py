"""
Running totals of replica store activity, kept in a small JSON file.
"""

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Dict, Union

logger = logging.getLogger(__name__)

ODOMETER_FILE = "odometer.json"

# Counter names
COUNT = "count"
SIZE = "storesize"
UPLOADED = "uploaded"
DOWNLOADED = "downloaded"
MODIFIED = "modified"


class Odometer:
    """
    Counters for objects stored, bytes stored, bytes uploaded and bytes downloaded.

    A read-only odometer never writes its file. Instances are not thread-safe;
    ReplicaManager serializes access to the one it owns.
    """

    def __init__(self, dir_path: Union[str, Path], read_only: bool = False):
        self.path = Path(dir_path) / ODOMETER_FILE
        self.read_only = read_only
        self._values: Dict[str, int] = {}
        if self.path.exists():
            with open(self.path, "r", encoding="utf-8") as f:
                self._values = {k: int(v) for k, v in json.load(f).items()}

    def get(self, name: str) -> int:
        return self._values.get(name, 0)

    def set(self, name: str, value: int) -> None:
        self._values[name] = int(value)

    def adjust(self, name: str, adjustment: int) -> None:
        self.set(name, self.get(name) + adjustment)

    def as_dict(self) -> Dict[str, int]:
        values = {name: self.get(name) for name in (COUNT, SIZE, UPLOADED, DOWNLOADED)}
        if MODIFIED in self._values:
            values[MODIFIED] = self._values[MODIFIED]
        return values

    def save(self) -> None:
        if self.read_only:
            return
        self._values[MODIFIED] = int(time.time() * 1000)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=self.path.parent, prefix=".odometer.", suffix=".tmp", delete=False
        ) as f:
            tmp_name = f.name
            json.dump(self._values, f, indent=2, sort_keys=True)
        try:
            os.replace(tmp_name, self.path)
        except OSError:
            os.remove(tmp_name)
            raise
        logger.debug(f"Saved odometer to {self.path}")

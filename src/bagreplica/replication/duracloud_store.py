"""
DuraCloud implementation of the replica store.

Talks to the DuraStore REST API directly with requests:
    HEAD   {base}/durastore/{space}/{content}   properties
    PUT    {base}/durastore/{space}/{content}   add or replace content
    GET    {base}/durastore/{space}/{content}   content bytes
    DELETE {base}/durastore/{space}/{content}   remove content
A container maps to a DuraCloud space and a key to a content id.
"""

import logging
from typing import BinaryIO, Dict, Optional
from urllib.parse import quote

import requests

from bagreplica.core.exceptions import ContentNotFound, StoreError, TransientStoreFailure
from bagreplica.replication.store import CHECKSUM, MEDIA_TYPE, MODIFIED, SIZE, ObjectStore

logger = logging.getLogger(__name__)


class DuraCloudObjectStore(ObjectStore):
    """Replica store backed by a DuraCloud account."""

    def __init__(
        self,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        store_id: Optional[str] = None,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            base_url: Scheme, host and port of the DuraCloud instance
            username: Account user, or None for anonymous access
            password: Account password
            store_id: Storage provider id; the account's primary store when None
            timeout: Seconds to wait on each HTTP call
            session: Session to reuse, mostly for tests
        """
        self._base_url = base_url.rstrip("/")
        self._store_id = store_id
        self._timeout = timeout
        self._session = session or requests.Session()
        if username:
            self._session.auth = (username, password or "")

    def _url(self, container: str, key: str) -> str:
        return f"{self._base_url}/durastore/{quote(container, safe='')}/{quote(key, safe='')}"

    def _request(self, method: str, container: str, key: str, **kwargs) -> requests.Response:
        url = self._url(container, key)
        params = {"storeID": self._store_id} if self._store_id else None
        try:
            response = self._session.request(method, url, params=params, timeout=self._timeout, **kwargs)
        except requests.RequestException as e:
            raise TransientStoreFailure(f"{method} {url} failed: {e}") from e

        if response.status_code == 404:
            raise ContentNotFound(container, key)
        if response.status_code >= 500:
            raise TransientStoreFailure(f"{method} {url} returned {response.status_code}: {response.text[:200]}")
        if not response.ok:
            raise StoreError(f"{method} {url} returned {response.status_code}: {response.text[:200]}")
        return response

    def get_properties(self, container: str, key: str) -> Dict[str, str]:
        response = self._request("HEAD", container, key)
        headers = response.headers
        checksum = headers.get("Content-MD5") or headers.get("ETag", "").strip('"')
        properties = {
            CHECKSUM: checksum or None,
            SIZE: headers.get("Content-Length"),
            MODIFIED: headers.get("Last-Modified"),
            MEDIA_TYPE: headers.get("Content-Type"),
        }
        return {k: v for k, v in properties.items() if v is not None}

    def write(self, container: str, key: str, content: BinaryIO, length: int, media_type: str, checksum: str) -> str:
        headers = {
            "Content-Type": media_type,
            "Content-MD5": checksum,
            "Content-Length": str(length),
        }
        response = self._request("PUT", container, key, data=content, headers=headers)
        logger.debug(f"DuraCloud accepted {container}/{key} ({length} bytes)")
        return response.headers.get("Content-MD5", checksum)

    def read(self, container: str, key: str) -> bytes:
        return self._request("GET", container, key).content

    def delete(self, container: str, key: str) -> None:
        self._request("DELETE", container, key)

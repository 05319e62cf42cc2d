"""Serving-side asset lookup.

A worker or server embeds the manifest written by ``sync`` and uses
``KVAssets`` to map request paths to remote keys.
"""

import logging
import threading
from typing import Optional

from .exceptions import KVNotFoundError
from .models import AssetIndex, AssetRecord
from .sync.manifest import decode_manifest
from .sync.protocols import RemoteStore

logger = logging.getLogger(__name__)


class KVAssets:
    """Looks up assets in an embedded manifest and fetches them from KV."""

    def __init__(self, index: bytes, store: Optional[RemoteStore] = None):
        """Initialize handler.

        Args:
            index: Manifest bytes as written by ``sync``
            store: Remote store, required only for ``get_asset``
        """
        self._blob = index
        self.store = store
        self._index: Optional[AssetIndex] = None
        self._lock = threading.Lock()

    def ensure_index(self) -> AssetIndex:
        """Decode the manifest on first use.

        Decoding is deferred so requests that are not for static assets
        never pay for it.

        Raises:
            ManifestCorrupt: If the embedded manifest is invalid
        """
        if self._index is None:
            with self._lock:
                if self._index is None:
                    self._index = decode_manifest(self._blob, source="embedded index")
        return self._index

    def lookup_key(self, path: str) -> Optional[AssetRecord]:
        """Find the record for a request path.

        A single leading ``/`` is removed.

        Returns:
            AssetRecord, or None if the path is not a known asset

        Raises:
            ValueError: If the path is empty
        """
        if path.startswith("/"):
            path = path[1:]
        if not path:
            raise ValueError("Empty key passed to lookup")
        return self.ensure_index().get(path)

    def get_asset(self, path: str) -> Optional[bytes]:
        """Fetch an asset's contents.

        Returns:
            Asset bytes, or None if the path is not in the manifest

        Raises:
            KVNotFoundError: If the manifest references a key that is no
                longer in the store (pruned too early, expired, or the
                manifest is out of date)
        """
        record = self.lookup_key(path)
        if record is None:
            return None
        if self.store is None:
            raise RuntimeError("KVAssets was created without a store")
        try:
            return self.store.get(record.remote_key)
        except KVNotFoundError:
            logger.warning(f"Manifest references missing key {record.remote_key}")
            raise

"""Shared fixtures for kvassets tests."""

import threading
from pathlib import Path
from typing import Optional
from unittest.mock import Mock

import pytest

from kvassets.exceptions import KVAPIError, KVNotFoundError
from kvassets.output import OutputFormatter


class InMemoryStore:
    """RemoteStore backed by a dict, with optional failure injection."""

    def __init__(self, values: Optional[dict[str, bytes]] = None):
        self.values: dict[str, bytes] = dict(values or {})
        self.puts: list[str] = []
        self.deletes: list[str] = []
        self.ttls: dict[str, Optional[int]] = {}
        self.fail_put: set[str] = set()
        self.fail_delete: set[str] = set()
        self.fail_list = False
        self._lock = threading.Lock()

    def list_keys(self) -> set[str]:
        if self.fail_list:
            raise KVAPIError("listing unavailable")
        with self._lock:
            return set(self.values)

    def get(self, key: str) -> bytes:
        with self._lock:
            if key not in self.values:
                raise KVNotFoundError(f"Key not found: {key}")
            return self.values[key]

    def put(self, key: str, data: bytes, expiration_ttl: Optional[int] = None) -> None:
        with self._lock:
            self.puts.append(key)
        if any(key.startswith(prefix) for prefix in self.fail_put):
            raise KVAPIError(f"put rejected for {key}")
        with self._lock:
            self.values[key] = data
            self.ttls[key] = expiration_ttl

    def delete(self, key: str) -> None:
        with self._lock:
            self.deletes.append(key)
        if key in self.fail_delete:
            raise KVAPIError(f"delete rejected for {key}")
        with self._lock:
            self.values.pop(key, None)

    def close(self) -> None:
        pass


@pytest.fixture
def store():
    """Provide an empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def store_factory():
    """Provide the in-memory store class for pre-populated stores."""
    return InMemoryStore


@pytest.fixture
def quiet_output():
    """Create a mock output formatter that suppresses progress bars."""
    output = Mock(spec=OutputFormatter)
    output.quiet = True
    output.json_output = False
    return output


@pytest.fixture
def asset_root(tmp_path: Path) -> Path:
    """Create an asset directory with a.txt and b.txt."""
    root = tmp_path / "public"
    root.mkdir()
    (root / "a.txt").write_bytes(b"hello")
    (root / "b.txt").write_bytes(b"world")
    return root

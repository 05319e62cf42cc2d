"""Capability interfaces the sync engine depends on.

Any object with matching methods can be used, which keeps the engine
independent of the transport and of the ignore-rule implementation.
"""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class RemoteStore(Protocol):
    """Key-value store holding asset contents."""

    def list_keys(self) -> set[str]:
        """Return every key currently in the store."""
        ...

    def get(self, key: str) -> bytes:
        """Return the value for a key, raising KVNotFoundError if absent."""
        ...

    def put(self, key: str, data: bytes, expiration_ttl: Optional[int] = None) -> None:
        """Store a value, overwriting any existing one."""
        ...

    def delete(self, key: str) -> None:
        """Delete a key; deleting a missing key succeeds."""
        ...


@runtime_checkable
class PathFilter(Protocol):
    """Decides which relative paths are part of the asset set."""

    def should_include(self, relative_path: str) -> bool:
        ...

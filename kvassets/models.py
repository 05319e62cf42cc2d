"""Data models for assets and the asset index."""

from dataclasses import dataclass
from typing import Any

AssetIndex = dict[str, "AssetRecord"]
"""Mapping of normalized relative path to AssetRecord."""


@dataclass(frozen=True)
class AssetRecord:
    """A single asset as stored in the manifest.

    Records are immutable: a content change produces a new record with a
    new remote key rather than modifying an existing one.
    """

    path: str
    """Relative path within the asset root (forward slashes, no leading /)"""

    digest: str
    """Hex digest of the file contents"""

    size: int
    """File size in bytes"""

    modified_at: int
    """Last modification time in UTC seconds since the epoch"""

    remote_key: str
    """Key the contents are stored under in the remote store"""

    def to_dict(self) -> dict[str, Any]:
        """Convert record to dictionary for serialization."""
        return {
            "path": self.path,
            "digest": self.digest,
            "size": self.size,
            "modified_at": self.modified_at,
            "remote_key": self.remote_key,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssetRecord":
        """Create AssetRecord from dictionary.

        Raises:
            KeyError: If a field is missing
            TypeError: If a field has the wrong type
        """
        path = data["path"]
        digest = data["digest"]
        remote_key = data["remote_key"]
        size = data["size"]
        modified_at = data["modified_at"]

        for name, value in (
            ("path", path),
            ("digest", digest),
            ("remote_key", remote_key),
        ):
            if not isinstance(value, str):
                raise TypeError(f"{name} must be a string, got {type(value).__name__}")
        for name, value in (("size", size), ("modified_at", modified_at)):
            # bool is an int subclass but never a valid size or timestamp
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(
                    f"{name} must be an integer, got {type(value).__name__}"
                )

        return cls(
            path=path,
            digest=digest,
            size=size,
            modified_at=modified_at,
            remote_key=remote_key,
        )


def referenced_keys(index: AssetIndex) -> set[str]:
    """Return the set of remote keys referenced by an index."""
    return {record.remote_key for record in index.values()}

"""Run state and reports for sync and prune operations.

Sync and prune are two independent state machines that share nothing
but the manifest file::

    Sync:  SCANNING -> DIFFING -> UPLOADING -> MANIFEST_WRITE -> DONE
                                  (any upload failure)        -> FAILED
    Prune: LISTING -> DIFFING -> DELETING -> COMPLETED
                                 (any delete failure) -> FAILED
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..exceptions import DeleteError, UploadError


class SyncPhase(str, Enum):
    """Phases of a sync run."""

    SCANNING = "scanning"
    DIFFING = "diffing"
    UPLOADING = "uploading"
    MANIFEST_WRITE = "manifest_write"
    DONE = "done"
    FAILED = "failed"


class PrunePhase(str, Enum):
    """Phases of a prune run."""

    LISTING = "listing"
    DIFFING = "diffing"
    DELETING = "deleting"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SyncReport:
    """Outcome of a sync run."""

    root: str
    manifest_path: str
    phase: SyncPhase = SyncPhase.SCANNING
    dry_run: bool = False

    total: int = 0
    """Assets in the new index"""

    unchanged: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)
    uploaded: list[str] = field(default_factory=list)
    failed: list[UploadError] = field(default_factory=list)

    removed_paths: list[str] = field(default_factory=list)
    stale_keys: list[str] = field(default_factory=list)

    manifest_update: Optional[str] = None
    """ManifestUpdate value once the manifest has been written"""

    @property
    def succeeded(self) -> bool:
        return self.phase == SyncPhase.DONE

    def to_dict(self) -> dict[str, Any]:
        """Convert report to dictionary for JSON output."""
        return {
            "root": self.root,
            "manifest_path": self.manifest_path,
            "phase": self.phase.value,
            "dry_run": self.dry_run,
            "total": self.total,
            "unchanged": len(self.unchanged),
            "pending": sorted(self.pending),
            "uploaded": sorted(self.uploaded),
            "failed": [
                {"path": e.path, "key": e.key, "error": str(e.cause)}
                for e in self.failed
            ],
            "removed_paths": self.removed_paths,
            "stale_keys": self.stale_keys,
            "manifest_update": self.manifest_update,
        }


@dataclass
class PruneReport:
    """Outcome of a prune run."""

    manifest_path: str
    phase: PrunePhase = PrunePhase.LISTING
    dry_run: bool = False

    referenced: int = 0
    """Keys referenced by the reference manifest"""

    candidates: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: list[DeleteError] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.phase == PrunePhase.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        """Convert report to dictionary for JSON output."""
        return {
            "manifest_path": self.manifest_path,
            "phase": self.phase.value,
            "dry_run": self.dry_run,
            "referenced": self.referenced,
            "candidates": self.candidates,
            "deleted": sorted(self.deleted),
            "failed": [{"key": e.key, "error": str(e.cause)} for e in self.failed],
        }

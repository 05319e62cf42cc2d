"""Reconciliation of the local asset index against the remote store."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..models import AssetIndex, AssetRecord, referenced_keys


class SyncAction(str, Enum):
    """Actions that can be taken for an asset during sync."""

    UPLOAD = "upload"
    """Content is not in the store yet"""

    SKIP = "skip"
    """Content is already stored under its key"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync an asset."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    record: AssetRecord
    """Local asset record"""


@dataclass
class ReconcileResult:
    """Partition of a local index against the remote key set."""

    decisions: list[SyncDecision] = field(default_factory=list)

    removed_paths: list[str] = field(default_factory=list)
    """Paths in the previous manifest that no longer exist locally"""

    stale_keys: list[str] = field(default_factory=list)
    """Remote keys the new index does not reference (prune candidates
    once the new manifest is live)"""

    @property
    def unchanged(self) -> list[AssetRecord]:
        return [d.record for d in self.decisions if d.action == SyncAction.SKIP]

    @property
    def pending(self) -> list[AssetRecord]:
        return [d.record for d in self.decisions if d.action == SyncAction.UPLOAD]


class Reconciler:
    """Decides which assets must be uploaded.

    Never decides to delete anything: removing obsolete keys is the job of
    the pruner, which runs separately once the new manifest is live.
    """

    def reconcile(
        self,
        index: AssetIndex,
        remote_keys: set[str],
        previous: Optional[AssetIndex] = None,
    ) -> ReconcileResult:
        """Compare a local index with the keys present remotely.

        Args:
            index: Freshly built local asset index
            remote_keys: Keys currently in the remote store
            previous: Previously written manifest, used only to report
                removed paths

        Returns:
            ReconcileResult with one decision per local asset, sorted by path
        """
        result = ReconcileResult()

        for path in sorted(index):
            result.decisions.append(self._decide(index[path], remote_keys))

        if previous is not None:
            result.removed_paths = sorted(set(previous) - set(index))

        result.stale_keys = sorted(remote_keys - referenced_keys(index))
        return result

    def _decide(self, record: AssetRecord, remote_keys: set[str]) -> SyncDecision:
        if record.remote_key in remote_keys:
            return SyncDecision(
                action=SyncAction.SKIP,
                reason="Content already stored",
                record=record,
            )
        return SyncDecision(
            action=SyncAction.UPLOAD,
            reason="New or modified content",
            record=record,
        )

"""Removal of remote keys no longer referenced by the live manifest."""

import logging
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import DeleteError, PruneSafetyViolation, RemoteListError
from ..models import AssetIndex, referenced_keys
from ..utils import DEFAULT_MAX_WORKERS
from .manifest import read_manifest
from .operations import SyncOperations, run_parallel
from .protocols import RemoteStore
from .state import PrunePhase, PruneReport

logger = logging.getLogger(__name__)


def find_prune_candidates(remote_keys: set[str], reference: AssetIndex) -> list[str]:
    """Keys present remotely but not referenced by the reference manifest."""
    return sorted(remote_keys - referenced_keys(reference))


class Pruner:
    """Deletes obsolete asset versions from the remote store.

    Only run this after the deployment that embeds the reference manifest
    is live. Until then the previous deployment may still serve keys that
    look obsolete from the new manifest's point of view. The pruner cannot
    check this itself.
    """

    def __init__(self, store: RemoteStore, max_workers: int = DEFAULT_MAX_WORKERS):
        self.store = store
        self.operations = SyncOperations(store)
        self.max_workers = max_workers

    def load_reference(self, manifest_path: Path) -> AssetIndex:
        """Load the reference manifest.

        Raises:
            PruneSafetyViolation: If the manifest does not exist
            ManifestCorrupt: If it cannot be read or decoded
        """
        missing = PruneSafetyViolation(
            f"Reference manifest {manifest_path} not found; refusing to prune "
            "without knowing which keys the live deployment uses"
        )
        if not manifest_path.is_file():
            raise missing
        try:
            return read_manifest(manifest_path)
        except FileNotFoundError as e:
            raise missing from e

    def prune(
        self,
        manifest_path: Path,
        dry_run: bool = False,
        on_deleted: Optional[Callable[[str, Optional[Exception]], None]] = None,
    ) -> PruneReport:
        """Delete every remote key the reference manifest does not use.

        Args:
            manifest_path: Manifest of the currently live deployment
            dry_run: Only report candidates, delete nothing
            on_deleted: Progress callback, called once per candidate

        Returns:
            PruneReport in phase COMPLETED or FAILED

        Raises:
            PruneSafetyViolation: If there is no reference manifest
            ManifestCorrupt: If the reference manifest cannot be read or is
                invalid
            RemoteListError: If the remote keys cannot be listed
        """
        report = PruneReport(manifest_path=str(manifest_path), dry_run=dry_run)
        reference = self.load_reference(manifest_path)
        report.referenced = len(referenced_keys(reference))

        report.phase = PrunePhase.LISTING
        try:
            remote_keys = self.store.list_keys()
        except Exception as e:
            raise RemoteListError(f"Cannot list remote keys: {e}") from e

        report.phase = PrunePhase.DIFFING
        report.candidates = find_prune_candidates(remote_keys, reference)
        logger.debug(
            f"{len(remote_keys)} remote key(s), {report.referenced} referenced, "
            f"{len(report.candidates)} candidate(s)"
        )

        if dry_run or not report.candidates:
            report.phase = PrunePhase.COMPLETED
            return report

        report.phase = PrunePhase.DELETING
        results = run_parallel(
            report.candidates,
            self.operations.delete_key,
            self.max_workers,
            on_done=on_deleted,
        )
        for key, error in results:
            if error is None:
                report.deleted.append(key)
            else:
                report.failed.append(DeleteError(key, error))

        report.failed.sort(key=lambda e: e.key)
        report.phase = PrunePhase.FAILED if report.failed else PrunePhase.COMPLETED
        return report

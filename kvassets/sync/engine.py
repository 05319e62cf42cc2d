"""Core sync engine for executing sync and prune operations."""

import logging
import time
from pathlib import Path
from typing import Optional

from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

from ..exceptions import (
    ManifestCorrupt,
    ManifestWriteError,
    PartialUploadFailure,
    RemoteListError,
    UploadError,
)
from ..models import AssetIndex, AssetRecord
from ..output import OutputFormatter
from ..utils import DEFAULT_MAX_WORKERS, MIN_EXPIRATION_TTL, format_size
from .checksum import ChecksumEngine
from .comparator import Reconciler, ReconcileResult
from .manifest import read_manifest, write_manifest
from .operations import SyncOperations, run_parallel
from .protocols import RemoteStore
from .pruner import Pruner
from .scanner import DirectoryScanner
from .state import PruneReport, SyncPhase, SyncReport

logger = logging.getLogger(__name__)


class SyncEngine:
    """Core sync engine that orchestrates asset synchronization.

    ``sync`` uploads new content and writes the manifest; it never deletes
    anything from the store. ``prune`` is a separate operation that removes
    keys the live manifest no longer references. The two must not run
    concurrently against the same namespace.
    """

    def __init__(
        self,
        store: RemoteStore,
        output: Optional[OutputFormatter] = None,
        scanner: Optional[DirectoryScanner] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        """Initialize sync engine.

        Args:
            store: Remote key-value store
            output: Output formatter for displaying progress/status
            scanner: Directory scanner (default: honors .kvignore files)
            max_workers: Number of parallel workers for hashing, uploads
                and deletes
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.store = store
        self.output = output or OutputFormatter()
        self.scanner = scanner or DirectoryScanner()
        self.max_workers = max_workers
        self.operations = SyncOperations(store)
        self.reconciler = Reconciler()

    @property
    def _show_progress(self) -> bool:
        return not (self.output.quiet or self.output.json_output)

    def sync(
        self,
        root: Path,
        manifest_path: Path,
        dry_run: bool = False,
        expiration_ttl: Optional[int] = None,
    ) -> SyncReport:
        """Sync an asset directory and write its manifest.

        Args:
            root: Local asset directory
            manifest_path: Where to write the manifest
            dry_run: If True, only show what would be uploaded
            expiration_ttl: Optional expiration for uploaded values (>= 60s)

        Returns:
            SyncReport in phase DONE

        Raises:
            ValueError: If expiration_ttl is shorter than 60 seconds
            ScanError: If the asset directory or a file cannot be read
            ChecksumError: If a file cannot be hashed
            RemoteListError: If the remote keys cannot be listed
            PartialUploadFailure: If any upload failed; no manifest is written
            ManifestWriteError: If the manifest cannot be written; the uploads
                have already happened and a re-run skips them

        Examples:
            >>> engine = SyncEngine(client)
            >>> report = engine.sync(Path("public"), Path("data/assets.bin"))
            >>> print(f"Uploaded {len(report.uploaded)} file(s)")
        """
        if expiration_ttl is not None and expiration_ttl < MIN_EXPIRATION_TTL:
            raise ValueError(
                f"TTL too short. Must be at least {MIN_EXPIRATION_TTL} seconds"
            )

        report = SyncReport(
            root=str(root), manifest_path=str(manifest_path), dry_run=dry_run
        )

        if not self.output.quiet:
            self.output.info(f"Syncing: {root}")
            self.output.info(f"Manifest: {manifest_path}")
            if dry_run:
                self.output.info("Dry run: No changes will be made")
            self.output.print("")

        # Step 1: Scan and hash
        report.phase = SyncPhase.SCANNING
        index, contents = self._build_index(root)
        report.total = len(index)

        # Step 2: Diff against the store
        report.phase = SyncPhase.DIFFING
        remote_keys = self._list_remote_keys()
        result = self.reconciler.reconcile(
            index, remote_keys, previous=self._load_previous(manifest_path)
        )
        report.unchanged = [r.path for r in result.unchanged]
        report.pending = [r.path for r in result.pending]
        report.removed_paths = result.removed_paths
        report.stale_keys = result.stale_keys
        self._display_sync_plan(result, dry_run)

        if dry_run:
            report.phase = SyncPhase.DONE
            return report

        # Step 3: Upload; returns only once every upload has finished
        report.phase = SyncPhase.UPLOADING
        pending_contents = {r.path: contents[r.path] for r in result.pending}
        del contents
        self._upload(result.pending, pending_contents, expiration_ttl, report)

        if report.failed:
            report.phase = SyncPhase.FAILED
            for error in report.failed:
                self.output.error(str(error))
            raise PartialUploadFailure(report.failed, report)

        # Step 4: Manifest, strictly after every upload succeeded
        report.phase = SyncPhase.MANIFEST_WRITE
        try:
            update = write_manifest(manifest_path, index)
        except ManifestWriteError:
            report.phase = SyncPhase.FAILED
            raise
        report.manifest_update = update.value
        report.phase = SyncPhase.DONE

        if not self.output.quiet:
            self._display_summary(report)

        return report

    def prune(self, manifest_path: Path, dry_run: bool = False) -> PruneReport:
        """Delete remote keys not referenced by the given manifest.

        The manifest must be the one embedded in the deployment that is
        currently live.

        Args:
            manifest_path: Reference manifest
            dry_run: If True, only list the keys that would be deleted

        Returns:
            PruneReport in phase COMPLETED or FAILED
        """
        pruner = Pruner(self.store, max_workers=self.max_workers)

        if not self._show_progress:
            report = pruner.prune(manifest_path, dry_run=dry_run)
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                transient=True,
            ) as progress:
                task = progress.add_task("Deleting stale keys...", total=None)

                def advance(key: str, error: Optional[Exception]) -> None:
                    progress.update(task, advance=1)

                report = pruner.prune(manifest_path, dry_run=dry_run, on_deleted=advance)

        if not self.output.quiet:
            self._display_prune_summary(report)
        for error in report.failed:
            self.output.error(str(error))
        return report

    def _build_index(self, root: Path) -> tuple[AssetIndex, dict[str, bytes]]:
        """Scan the asset directory and hash every file."""
        scan_start = time.time()
        checksums = ChecksumEngine(max_workers=self.max_workers)

        if not self._show_progress:
            index, contents = checksums.build_index(self.scanner.iter_files(root))
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                transient=True,
            ) as progress:
                task = progress.add_task("Scanning asset directory...", total=None)
                index, contents = checksums.build_index(self.scanner.iter_files(root))
                progress.update(task, description=f"Found {len(index)} asset(s)")

        logger.debug(
            f"Scan of {root} took {time.time() - scan_start:.2f}s "
            f"for {len(index)} file(s)"
        )
        return index, contents

    def _list_remote_keys(self) -> set[str]:
        try:
            keys = self.store.list_keys()
        except Exception as e:
            raise RemoteListError(f"Cannot list remote keys: {e}") from e
        logger.debug(f"Found {len(keys)} remote key(s)")
        return keys

    def _load_previous(self, manifest_path: Path) -> Optional[AssetIndex]:
        """Load the previous manifest for reporting; never required."""
        if not manifest_path.is_file():
            return None
        try:
            return read_manifest(manifest_path)
        except (ManifestCorrupt, OSError) as e:
            logger.warning(f"Ignoring unreadable previous manifest: {e}")
            return None

    def _upload(
        self,
        pending: list[AssetRecord],
        contents: dict[str, bytes],
        expiration_ttl: Optional[int],
        report: SyncReport,
    ) -> None:
        """Upload pending assets in parallel and record the outcome."""
        if not pending:
            return

        def upload(record: AssetRecord) -> None:
            self.operations.upload_record(
                record, contents[record.path], expiration_ttl=expiration_ttl
            )

        if not self._show_progress:
            results = run_parallel(pending, upload, self.max_workers)
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
            ) as progress:
                task = progress.add_task("Uploading assets...", total=len(pending))

                def advance(record: AssetRecord, error: Optional[Exception]) -> None:
                    progress.update(task, advance=1)

                results = run_parallel(
                    pending, upload, self.max_workers, on_done=advance
                )

        for record, error in results:
            if error is None:
                report.uploaded.append(record.path)
            else:
                report.failed.append(UploadError(record.path, record.remote_key, error))
        report.failed.sort(key=lambda e: e.path)

    def _display_sync_plan(self, result: ReconcileResult, dry_run: bool) -> None:
        """Display sync plan to user."""
        if self.output.quiet:
            return

        pending = result.pending
        self.output.info("Sync plan:")
        if pending:
            size = format_size(sum(r.size for r in pending))
            self.output.info(f"  ↑ Upload: {len(pending)} file(s), {size}")
        if result.unchanged:
            self.output.info(f"  = Unchanged: {len(result.unchanged)} file(s)")
        if result.removed_paths:
            self.output.info(
                f"  ✗ Removed locally: {len(result.removed_paths)} file(s)"
            )

        if dry_run:
            for record in pending:
                self.output.info(f"    {record.path} -> {record.remote_key}")

        self.output.print("")

    def _display_summary(self, report: SyncReport) -> None:
        """Display sync summary."""
        self.output.success("Sync complete!")
        if report.uploaded:
            self.output.info(f"  Uploaded: {len(report.uploaded)}")
        else:
            self.output.info("No uploads needed - everything is in the store!")

        verb = {
            "new": "Generated",
            "updated": "Updated",
            "no_change": "No change to",
        }[report.manifest_update or "no_change"]
        self.output.info(f"{verb} asset manifest {report.manifest_path}")

        if report.stale_keys:
            self.output.info(
                f"Deferred pruning {len(report.stale_keys)} stale key(s). "
                "Run 'prune' after the new manifest is deployed."
            )

    def _display_prune_summary(self, report: PruneReport) -> None:
        """Display prune summary."""
        if not report.candidates:
            self.output.success("Nothing to prune")
            return

        if report.dry_run:
            self.output.info(f"Would delete {len(report.candidates)} key(s):")
            for key in report.candidates:
                self.output.info(f"  {key}")
            return

        if report.succeeded:
            self.output.success(f"Pruned {len(report.deleted)} key(s)")
        else:
            self.output.warning(
                f"Pruned {len(report.deleted)} key(s), "
                f"{len(report.failed)} deletion(s) failed"
            )

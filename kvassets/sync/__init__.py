"""Sync engine for kvassets - upload, manifest and prune operations."""

from .checksum import DIGEST_ALGORITHM, ChecksumEngine, compute_digest
from .comparator import Reconciler, ReconcileResult, SyncAction, SyncDecision
from .engine import SyncEngine
from .ignore import IGNORE_FILE_NAME, IgnoreFileManager, IgnoreRule, load_ignore_file
from .keys import KEY_DIGEST_LENGTH, derive_remote_key
from .manifest import (
    MANIFEST_VERSION,
    ManifestUpdate,
    decode_manifest,
    encode_manifest,
    manifest_to_json,
    read_manifest,
    write_manifest,
)
from .operations import SyncOperations
from .protocols import PathFilter, RemoteStore
from .pruner import Pruner, find_prune_candidates
from .scanner import DirectoryScanner, ScannedFile
from .state import PrunePhase, PruneReport, SyncPhase, SyncReport

__all__ = [
    "SyncEngine",
    "SyncOperations",
    "DirectoryScanner",
    "ScannedFile",
    "ChecksumEngine",
    "compute_digest",
    "DIGEST_ALGORITHM",
    "derive_remote_key",
    "KEY_DIGEST_LENGTH",
    "Reconciler",
    "ReconcileResult",
    "SyncAction",
    "SyncDecision",
    "MANIFEST_VERSION",
    "ManifestUpdate",
    "encode_manifest",
    "decode_manifest",
    "read_manifest",
    "write_manifest",
    "manifest_to_json",
    "Pruner",
    "find_prune_candidates",
    "RemoteStore",
    "PathFilter",
    "SyncPhase",
    "SyncReport",
    "PrunePhase",
    "PruneReport",
    "IgnoreFileManager",
    "IgnoreRule",
    "IGNORE_FILE_NAME",
    "load_ignore_file",
]

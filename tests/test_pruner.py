"""Tests for pruning unreferenced remote keys."""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from kvassets.exceptions import (
    KVAPIError,
    ManifestCorrupt,
    PruneSafetyViolation,
    RemoteListError,
)
from kvassets.models import AssetRecord
from kvassets.sync.checksum import compute_digest
from kvassets.sync.keys import derive_remote_key
from kvassets.sync.manifest import write_manifest
from kvassets.sync.operations import run_parallel
from kvassets.sync.pruner import Pruner, find_prune_candidates
from kvassets.sync.state import PrunePhase


def make_record(path: str, data: bytes) -> AssetRecord:
    digest = compute_digest(data)
    return AssetRecord(
        path=path,
        digest=digest,
        size=len(data),
        modified_at=1700000000,
        remote_key=derive_remote_key(path, digest),
    )


@pytest.fixture
def reference():
    return {
        "a.txt": make_record("a.txt", b"hello2"),
        "b.txt": make_record("b.txt", b"world"),
    }


@pytest.fixture
def manifest_path(tmp_path, reference):
    path = tmp_path / "assets.bin"
    write_manifest(path, reference)
    return path


class TestFindPruneCandidates:
    """Tests for find_prune_candidates."""

    def test_only_unreferenced_keys(self, reference):
        old = make_record("a.txt", b"hello").remote_key
        remote = {old} | {r.remote_key for r in reference.values()}
        assert find_prune_candidates(remote, reference) == [old]

    def test_never_includes_referenced_keys(self, reference):
        remote = {r.remote_key for r in reference.values()}
        assert find_prune_candidates(remote, reference) == []

    def test_sorted(self, reference):
        remote = {"z." + "0" * 32, "m." + "0" * 32}
        assert find_prune_candidates(remote, reference) == [
            "m." + "0" * 32,
            "z." + "0" * 32,
        ]


class TestPruner:
    """Tests for Pruner.prune."""

    def test_deletes_exactly_stale_keys(self, store_factory, manifest_path, reference):
        old = make_record("a.txt", b"hello").remote_key
        store = store_factory({r.remote_key: b"x" for r in reference.values()})
        store.values[old] = b"hello"

        report = Pruner(store, max_workers=2).prune(manifest_path)

        assert report.phase == PrunePhase.COMPLETED
        assert report.referenced == 2
        assert report.candidates == [old]
        assert report.deleted == [old]
        assert set(store.values) == {r.remote_key for r in reference.values()}

    def test_nothing_to_prune(self, store_factory, manifest_path, reference):
        store = store_factory({r.remote_key: b"x" for r in reference.values()})
        report = Pruner(store).prune(manifest_path)
        assert report.succeeded
        assert store.deletes == []

    def test_missing_manifest_raises_before_listing(self, tmp_path):
        store = Mock()
        with pytest.raises(PruneSafetyViolation, match="refusing to prune"):
            Pruner(store).prune(tmp_path / "missing.bin")
        store.list_keys.assert_not_called()

    def test_listing_error(self, store_factory, manifest_path):
        store = store_factory()
        store.fail_list = True
        with pytest.raises(RemoteListError, match="Cannot list remote keys"):
            Pruner(store).prune(manifest_path)

    def test_foreign_listing_error_is_wrapped(self, manifest_path):
        store = Mock()
        store.list_keys.side_effect = RuntimeError("connection reset")
        with pytest.raises(RemoteListError, match="connection reset") as exc_info:
            Pruner(store).prune(manifest_path)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        store.delete.assert_not_called()

    def test_unreadable_manifest_raises_before_listing(self, manifest_path):
        """Test that an OS error reading the manifest is ManifestCorrupt."""
        store = Mock()
        with patch.object(Path, "read_bytes", side_effect=PermissionError("denied")):
            with pytest.raises(ManifestCorrupt, match="Cannot read manifest"):
                Pruner(store).prune(manifest_path)
        store.list_keys.assert_not_called()

    def test_manifest_vanishing_is_refused(self, manifest_path):
        store = Mock()
        with patch.object(Path, "read_bytes", side_effect=FileNotFoundError("gone")):
            with pytest.raises(PruneSafetyViolation):
                Pruner(store).prune(manifest_path)
        store.list_keys.assert_not_called()

    def test_failed_deletes_are_reported(self, store_factory, manifest_path):
        stale = ["x." + "1" * 32, "y." + "2" * 32, "z." + "3" * 32]
        store = store_factory({key: b"" for key in stale})
        store.fail_delete.update({stale[2], stale[0]})

        report = Pruner(store, max_workers=3).prune(manifest_path)

        assert report.phase == PrunePhase.FAILED
        assert report.deleted == [stale[1]]
        assert [e.key for e in report.failed] == [stale[0], stale[2]]
        assert isinstance(report.failed[0].cause, KVAPIError)

    def test_rerun_only_sees_survivors(self, store_factory, manifest_path):
        stale = ["x." + "1" * 32, "y." + "2" * 32]
        store = store_factory({key: b"" for key in stale})
        store.fail_delete.add(stale[0])
        Pruner(store).prune(manifest_path)

        store.fail_delete.clear()
        store.deletes.clear()
        report = Pruner(store).prune(manifest_path)

        assert store.deletes == [stale[0]]
        assert report.succeeded

    def test_progress_callback(self, store_factory, manifest_path):
        store = store_factory({"x." + "1" * 32: b""})
        seen = []
        Pruner(store).prune(manifest_path, on_deleted=lambda k, e: seen.append((k, e)))
        assert seen == [("x." + "1" * 32, None)]

    def test_report_to_dict(self, store_factory, manifest_path):
        store = store_factory({"x." + "1" * 32: b""})
        data = Pruner(store).prune(manifest_path, dry_run=True).to_dict()
        assert data["phase"] == "completed"
        assert data["dry_run"] is True
        assert data["candidates"] == ["x." + "1" * 32]
        assert data["deleted"] == []


class TestRunParallel:
    """Tests for run_parallel."""

    def test_empty_input(self):
        assert run_parallel([], Mock(), max_workers=4) == []

    def test_collects_every_outcome(self):
        def work(item):
            if item == 3:
                raise RuntimeError("boom")

        results = dict(run_parallel(list(range(6)), work, max_workers=3))
        assert sorted(results) == list(range(6))
        assert isinstance(results[3], RuntimeError)
        assert all(results[i] is None for i in (0, 1, 2, 4, 5))

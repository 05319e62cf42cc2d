"""Tests for reconciliation of local assets against remote keys."""

import pytest

from kvassets.models import AssetRecord
from kvassets.sync.checksum import compute_digest
from kvassets.sync.comparator import Reconciler, SyncAction
from kvassets.sync.keys import derive_remote_key


def make_record(path: str, data: bytes) -> AssetRecord:
    digest = compute_digest(data)
    return AssetRecord(
        path=path,
        digest=digest,
        size=len(data),
        modified_at=1700000000,
        remote_key=derive_remote_key(path, digest),
    )


class TestReconciler:
    """Tests for Reconciler.reconcile."""

    @pytest.fixture
    def reconciler(self):
        return Reconciler()

    @pytest.fixture
    def index(self):
        return {
            "b.txt": make_record("b.txt", b"world"),
            "a.txt": make_record("a.txt", b"hello"),
        }

    def test_empty_remote_uploads_everything(self, reconciler, index):
        """Test that every asset is pending when the store is empty."""
        result = reconciler.reconcile(index, set())

        assert [r.path for r in result.pending] == ["a.txt", "b.txt"]
        assert result.unchanged == []
        assert all(d.action == SyncAction.UPLOAD for d in result.decisions)
        assert result.decisions[0].reason == "New or modified content"

    def test_present_keys_are_unchanged(self, reconciler, index):
        """Test that stored keys are skipped."""
        remote = {index["a.txt"].remote_key}
        result = reconciler.reconcile(index, remote)

        assert [r.path for r in result.unchanged] == ["a.txt"]
        assert [r.path for r in result.pending] == ["b.txt"]
        assert result.decisions[0].record.path == "a.txt"
        assert result.decisions[0].reason == "Content already stored"

    def test_stale_keys_reported_not_deleted(self, reconciler, index):
        """Test that unreferenced remote keys are only reported."""
        old = make_record("a.txt", b"old")
        remote = {old.remote_key, index["b.txt"].remote_key}
        result = reconciler.reconcile(index, remote)

        assert result.stale_keys == [old.remote_key]
        assert not hasattr(SyncAction, "DELETE")

    def test_removed_paths_need_previous_manifest(self, reconciler, index):
        """Test that removed paths come from the previous manifest."""
        previous = dict(index)
        previous["gone.txt"] = make_record("gone.txt", b"bye")

        assert reconciler.reconcile(index, set()).removed_paths == []
        result = reconciler.reconcile(index, set(), previous=previous)
        assert result.removed_paths == ["gone.txt"]

    def test_partition_covers_every_record(self, reconciler, index):
        remote = {index["b.txt"].remote_key}
        result = reconciler.reconcile(index, remote)
        paths = {r.path for r in result.unchanged} | {r.path for r in result.pending}
        assert paths == set(index)

    def test_empty_index(self, reconciler):
        result = reconciler.reconcile({}, {"x." + "0" * 32})
        assert result.decisions == []
        assert result.stale_keys == ["x." + "0" * 32]

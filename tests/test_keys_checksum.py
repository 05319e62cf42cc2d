"""Tests for digests, remote keys and index construction."""

import hashlib

import pytest

from kvassets.exceptions import ChecksumError, ScanError
from kvassets.sync.checksum import ChecksumEngine, build_record, compute_digest
from kvassets.sync.keys import (
    KEY_DIGEST_LENGTH,
    MAX_KEY_LENGTH,
    derive_remote_key,
)
from kvassets.sync.scanner import ScannedFile


def scanned(path: str, data: bytes) -> ScannedFile:
    return ScannedFile(path=path, data=data, size=len(data), modified_at=1700000000)


class TestComputeDigest:
    """Tests for compute_digest."""

    def test_sha256_hex(self):
        assert compute_digest(b"hello") == hashlib.sha256(b"hello").hexdigest()

    def test_lowercase_64_chars(self):
        digest = compute_digest(b"")
        assert len(digest) == 64
        assert digest == digest.lower()

    def test_different_content_different_digest(self):
        assert compute_digest(b"hello") != compute_digest(b"hello2")


class TestDeriveRemoteKey:
    """Tests for derive_remote_key."""

    def test_deterministic(self):
        digest = compute_digest(b"hello")
        assert derive_remote_key("a.txt", digest) == derive_remote_key("a.txt", digest)

    def test_format(self):
        digest = compute_digest(b"hello")
        key = derive_remote_key("css/site.css", digest)
        assert key == f"css/site.css.{digest[:KEY_DIGEST_LENGTH]}"

    def test_different_digest_different_key(self):
        a = derive_remote_key("a.txt", compute_digest(b"hello"))
        b = derive_remote_key("a.txt", compute_digest(b"world"))
        assert a != b

    def test_same_content_different_path_different_key(self):
        digest = compute_digest(b"same")
        assert derive_remote_key("a.txt", digest) != derive_remote_key("b.txt", digest)

    def test_short_digest_rejected(self):
        with pytest.raises(ScanError, match="too short"):
            derive_remote_key("a.txt", "abc")

    def test_overlong_key_rejected(self):
        path = "x" * MAX_KEY_LENGTH
        with pytest.raises(ScanError, match="exceeds") as exc_info:
            derive_remote_key(path, compute_digest(b""))
        assert exc_info.value.path == path


class TestBuildRecord:
    """Tests for build_record."""

    def test_record_fields(self):
        record = build_record(scanned("a.txt", b"hello"))
        assert record.path == "a.txt"
        assert record.digest == compute_digest(b"hello")
        assert record.size == 5
        assert record.modified_at == 1700000000
        assert record.remote_key == derive_remote_key("a.txt", record.digest)

    def test_unhashable_data_raises_checksum_error(self):
        bad = ScannedFile(path="a.txt", data="text", size=4, modified_at=0)  # type: ignore[arg-type]
        with pytest.raises(ChecksumError) as exc_info:
            build_record(bad)
        assert exc_info.value.path == "a.txt"


class TestChecksumEngine:
    """Tests for ChecksumEngine.build_index."""

    def test_rejects_zero_workers(self):
        with pytest.raises(ValueError):
            ChecksumEngine(max_workers=0)

    @pytest.mark.parametrize("workers", [1, 4])
    def test_builds_index_keyed_by_path(self, workers):
        files = [scanned(f"f{i}.txt", f"data {i}".encode()) for i in range(10)]
        index, contents = ChecksumEngine(max_workers=workers).build_index(files)

        assert sorted(index) == sorted(f.path for f in files)
        assert contents["f3.txt"] == b"data 3"
        assert index["f3.txt"].digest == compute_digest(b"data 3")

    def test_failure_names_path(self):
        files = [
            scanned("ok.txt", b"ok"),
            ScannedFile(path="bad.txt", data="text", size=4, modified_at=0),  # type: ignore[arg-type]
        ]
        with pytest.raises(ChecksumError, match="bad.txt"):
            ChecksumEngine(max_workers=2).build_index(files)

    def test_scan_error_from_iterator_propagates(self):
        def files():
            yield scanned("a.txt", b"a")
            raise ScanError("Cannot read b.txt", "b.txt")

        with pytest.raises(ScanError, match="b.txt"):
            ChecksumEngine(max_workers=2).build_index(files())

"""Unit tests for utility functions and data models."""

import pytest

from kvassets.models import AssetRecord, referenced_keys
from kvassets.utils import (
    format_size,
    format_timestamp,
    quote_key,
    to_epoch_seconds,
)


class TestFormatSize:
    """Tests for format_size."""

    @pytest.mark.parametrize(
        "size,expected",
        [
            (0, "0 B"),
            (1023, "1023 B"),
            (1536, "1.5 KB"),
            (5 * 1024 * 1024, "5.0 MB"),
            (3 * 1024**3, "3.0 GB"),
        ],
    )
    def test_units(self, size, expected):
        assert format_size(size) == expected


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_to_epoch_seconds_truncates(self):
        assert to_epoch_seconds(1700000000.999) == 1700000000

    def test_format_timestamp(self):
        assert format_timestamp(0) == "1970-01-01T00:00:00+00:00"

    def test_format_timestamp_none(self):
        assert format_timestamp(None) == "-"


class TestQuoteKey:
    """Tests for quote_key."""

    def test_slashes_are_encoded(self):
        assert quote_key("css/site.css.abc") == "css%2Fsite.css.abc"

    def test_unicode_and_spaces(self):
        assert quote_key("img/a b é.png") == "img%2Fa%20b%20%C3%A9.png"


class TestAssetRecord:
    """Tests for AssetRecord serialization."""

    @pytest.fixture
    def record(self):
        return AssetRecord(
            path="a.txt",
            digest="ab" * 32,
            size=5,
            modified_at=1700000000,
            remote_key="a.txt." + "ab" * 16,
        )

    def test_round_trip(self, record):
        assert AssetRecord.from_dict(record.to_dict()) == record

    def test_frozen(self, record):
        with pytest.raises(AttributeError):
            record.remote_key = "other"  # type: ignore[misc]

    def test_missing_field(self, record):
        data = record.to_dict()
        del data["digest"]
        with pytest.raises(KeyError):
            AssetRecord.from_dict(data)

    @pytest.mark.parametrize(
        "field,value", [("size", True), ("size", 5.0), ("path", 1)]
    )
    def test_wrong_type(self, record, field, value):
        data = record.to_dict()
        data[field] = value
        with pytest.raises(TypeError):
            AssetRecord.from_dict(data)

    def test_referenced_keys(self, record):
        assert referenced_keys({"a.txt": record}) == {record.remote_key}
        assert referenced_keys({}) == set()

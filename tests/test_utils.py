"""Tests for utility functions."""

from datetime import datetime

import pytest

from gitref.utils import (
    as_ignore_entry,
    format_timestamp,
    is_under_workspace_dir,
    normalize_separators,
    now_iso,
    parse_iso_timestamp,
    short_revision,
)


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_now_iso_is_parseable(self):
        assert isinstance(parse_iso_timestamp(now_iso()), datetime)

    def test_zulu_suffix(self):
        """Test a trailing Z is read as UTC."""
        parsed = parse_iso_timestamp("2025-01-15T10:30:00Z")
        expected = parse_iso_timestamp("2025-01-15T10:30:00+00:00")
        assert parsed == expected

    def test_naive_timestamp(self):
        assert parse_iso_timestamp("2025-01-15T10:30:00") == datetime(
            2025, 1, 15, 10, 30
        )

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_unparseable(self, value):
        assert parse_iso_timestamp(value) is None

    def test_format_timestamp(self):
        assert format_timestamp("2025-01-15T10:30:00") == "2025-01-15 10:30"
        assert format_timestamp(None) == "-"


class TestRevisionAndPathHelpers:
    """Tests for revision and path helpers."""

    def test_short_revision(self):
        assert short_revision("0123456789abcdef") == "0123456"
        assert short_revision("") == "-"

    def test_normalize_separators(self):
        assert normalize_separators("vendor\\lib\\x") == "vendor/lib/x"

    def test_as_ignore_entry(self):
        assert as_ignore_entry("vendor\\widgets") == "vendor/widgets/"
        assert as_ignore_entry("vendor/widgets/") == "vendor/widgets/"

    @pytest.mark.parametrize(
        "path,expected",
        [
            (".gitreference/github.com/a/b", True),
            (".gitreference\\x", True),
            (".gitreference", False),
            ("vendor/.gitreference/x", False),
            (".gitreference-old/x", False),
        ],
    )
    def test_is_under_workspace_dir(self, path, expected):
        assert is_under_workspace_dir(path) is expected

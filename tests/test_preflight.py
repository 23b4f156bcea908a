"""Tests for the pre-flight conflict check."""

import pytest

from safemove.core import ConflictChecker, ExistingDestination, FileEntry
from safemove.mover import TransferRequest


@pytest.fixture
def checker(destination_root):
    return ConflictChecker(destination_root)


def test_reports_existing_destinations(checker, destination_root):
    """Test that only destinations already present are reported."""
    (destination_root / "Movies" / "A").mkdir(parents=True)
    (destination_root / "Movies" / "A" / "A.mkv").write_text("a")

    existing = checker.check(
        [
            FileEntry(source_path="dl/a.mkv", destination_path="Movies/A/A.mkv"),
            FileEntry(source_path="dl/b.mkv", destination_path="Movies/B/B.mkv"),
        ]
    )

    assert existing == [
        ExistingDestination(source_path="dl/a.mkv", destination_path="Movies/A/A.mkv", file_name="A.mkv")
    ]


def test_accepts_transfer_requests(checker, destination_root):
    """Test that TransferRequests can be checked too."""
    (destination_root / "x.mkv").write_text("x")
    existing = checker.check([TransferRequest("x.mkv", "/x.mkv")])
    assert [e.file_name for e in existing] == ["x.mkv"]


def test_existing_directory_counts(checker, destination_root):
    """Test that an existing directory is a conflict."""
    (destination_root / "Season 1").mkdir()
    existing = checker.check([FileEntry(source_path="s1", destination_path="Season 1")])
    assert len(existing) == 1


def test_skips_unusable_destinations(checker, destination_root):
    """Test that empty destinations are skipped and traversal stays inside the zone."""
    (destination_root / "etc").mkdir()
    (destination_root / "etc" / "passwd").write_text("inside")

    existing = checker.check(
        [
            FileEntry(source_path="a", destination_path=""),
            FileEntry(source_path="b", destination_path="../../etc/passwd"),
        ]
    )

    assert [e.source_path for e in existing] == ["b"]


def test_does_not_modify_filesystem(checker, destination_root):
    """Test that checking creates nothing."""
    checker.check([FileEntry(source_path="a", destination_path="New/Folder/a.mkv")])
    assert list(destination_root.iterdir()) == []

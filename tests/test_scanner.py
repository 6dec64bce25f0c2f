"""Tests for empty directory scanning and cleanup."""

import pytest

from gitref.sync.scanner import clean_empty, remove_empty_ancestors, scan_empty


@pytest.fixture
def tree(tmp_path):
    """A file at depth three next to two subtrees without files.

    root/
      a/b/c/file.txt
      a/b/empty1/x/
      a/empty2/y/z/
    """
    root = tmp_path / "root"
    (root / "a" / "b" / "c").mkdir(parents=True)
    (root / "a" / "b" / "c" / "file.txt").write_text("data")
    (root / "a" / "b" / "empty1" / "x").mkdir(parents=True)
    (root / "a" / "empty2" / "y" / "z").mkdir(parents=True)
    return root


class TestScanEmpty:
    """Tests for scan_empty."""

    def test_reports_only_empty_subtrees_deepest_first(self, tree):
        """Test a file does not stop the scan of sibling subtrees."""
        found = [d.relative_path for d in scan_empty(tree)]
        assert found == [
            "a/b/empty1/x",
            "a/empty2/y/z",
            "a/b/empty1",
            "a/empty2/y",
            "a/empty2",
        ]

    def test_absolute_paths(self, tree):
        """Test absolute paths point into the scanned tree."""
        for directory in scan_empty(tree):
            assert directory.absolute_path == tree / directory.relative_path
            assert directory.absolute_path.is_dir()

    def test_root_never_reported(self, tmp_path):
        """Test an empty root yields nothing."""
        assert scan_empty(tmp_path) == []

    def test_missing_root(self, tmp_path):
        """Test scanning a path that does not exist."""
        assert scan_empty(tmp_path / "missing") == []

    def test_directory_with_file_not_reported(self, tmp_path):
        """Test a directory holding only a file is not empty."""
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / "keep").write_text("")
        assert scan_empty(tmp_path) == []


class TestCleanEmpty:
    """Tests for clean_empty."""

    def test_removes_all_scanned_dirs(self, tree):
        """Test every empty directory is removed and files are kept."""
        removed = clean_empty(tree, scan_empty(tree))
        assert removed == 5
        assert (tree / "a" / "b" / "c" / "file.txt").exists()
        assert not (tree / "a" / "b" / "empty1").exists()
        assert not (tree / "a" / "empty2").exists()
        assert scan_empty(tree) == []

    def test_rechecks_before_removing(self, tree):
        """Test a directory that gained a file since the scan is kept."""
        dirs = scan_empty(tree)
        (tree / "a" / "empty2" / "y" / "z" / "new.txt").write_text("new")
        clean_empty(tree, dirs)
        assert (tree / "a" / "empty2" / "y" / "z" / "new.txt").exists()
        assert not (tree / "a" / "b" / "empty1").exists()

    def test_root_is_kept(self, tmp_path):
        """Test cleaning never removes the root."""
        root = tmp_path / "root"
        (root / "only" / "empty").mkdir(parents=True)
        clean_empty(root, scan_empty(root))
        assert root.is_dir()
        assert list(root.iterdir()) == []


class TestRemoveEmptyAncestors:
    """Tests for remove_empty_ancestors."""

    def test_walks_up_to_boundary(self, tmp_path):
        """Test parents are removed up to, not including, stop_at."""
        deep = tmp_path / "x" / "y" / "z"
        deep.mkdir(parents=True)
        deep.rmdir()
        assert remove_empty_ancestors(deep, tmp_path) == 2
        assert tmp_path.is_dir()
        assert not (tmp_path / "x").exists()

    def test_stops_at_non_empty_parent(self, tmp_path):
        """Test the walk ends at the first parent with content."""
        (tmp_path / "x" / "y").mkdir(parents=True)
        (tmp_path / "x" / "other.txt").write_text("")
        assert remove_empty_ancestors(tmp_path / "x" / "y" / "gone", tmp_path) == 1
        assert (tmp_path / "x").is_dir()

    def test_path_outside_boundary(self, tmp_path):
        """Test nothing is removed when the path is not below stop_at."""
        (tmp_path / "outside" / "dir").mkdir(parents=True)
        boundary = tmp_path / "boundary"
        boundary.mkdir()
        assert remove_empty_ancestors(tmp_path / "outside" / "dir" / "x", boundary) == 0
        assert (tmp_path / "outside" / "dir").is_dir()

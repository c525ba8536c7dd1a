"""Tests for path remapping and length checks."""

import hypothesis.strategies as st
import pytest
from hypothesis import given

from dirsnap.errors import PathTooLong
from dirsnap.paths import check_path_length, child_path, relative_path, remap


path_segment = st.text(
    alphabet=st.characters(blacklist_characters="\x00/", blacklist_categories=("Cs",)),
    min_size=1,
    max_size=12,
)


class TestRemap:

    def test_remap_nested_file(self):
        assert remap("/db/a/file1", "/db", "/repo/snap") == "/repo/snap/a/file1"

    def test_remap_root_itself(self):
        assert remap("/db", "/db", "/repo/snap") == "/repo/snap"

    def test_remap_requires_prefix(self):
        with pytest.raises(ValueError):
            remap("/other/file", "/db", "/repo")

    def test_relative_path(self):
        assert relative_path("/db/a/link1", "/db") == "/a/link1"

    def test_relative_path_rejects_sibling_prefix(self):
        with pytest.raises(ValueError):
            relative_path("/dbx/file", "/db")

    def test_filesystem_root_as_source(self):
        assert relative_path("/etc", "/") == "/etc"
        assert remap("/etc", "/", "/repo/snap") == "/repo/snap/etc"
        assert remap("/etc/passwd", "/", "/repo/snap") == "/repo/snap/etc/passwd"

    def test_filesystem_root_as_destination(self):
        assert remap("/repo/snap/etc", "/repo/snap", "/") == "/etc"

    def test_child_path(self):
        assert child_path("/db", "a") == "/db/a"
        assert child_path("/", "etc") == "/etc"

    @given(segments=st.lists(path_segment, min_size=1, max_size=5))
    def test_remap_onto_same_root_is_identity(self, segments):
        """
        Remapping a path from a root onto that same root returns the path.
        """
        root = "/src"
        path = root + "/" + "/".join(segments)
        assert remap(path, root, root) == path

    @given(segments=st.lists(path_segment, min_size=1, max_size=5))
    def test_remap_round_trip(self, segments):
        path = "/src/" + "/".join(segments)
        there = remap(path, "/src", "/dest/x")
        assert remap(there, "/dest/x", "/src") == path


class TestCheckPathLength:

    def test_short_path_returned(self):
        assert check_path_length("/a/b", 10) == "/a/b"

    def test_exact_limit_allowed(self):
        path = "/" + "a" * 9
        assert check_path_length(path, 10) == path

    def test_over_limit_raises(self):
        path = "/" + "a" * 10
        with pytest.raises(PathTooLong) as exc_info:
            check_path_length(path, 10)
        assert exc_info.value.path == path

    def test_length_counts_encoded_bytes(self):
        # Four characters, eight bytes in UTF-8
        path = "/ééé"
        assert len(path) == 4
        with pytest.raises(PathTooLong):
            check_path_length(path, 6)

"""Tests for input discovery."""

import os
import sys

import pytest

from transbatch.scanner import FileCandidate, is_image, scan_directory


class TestIsImage:

    @pytest.mark.parametrize("name", ["a.jpg", "a.JPG", "a.jpeg", "a.png", "a.PnG", "a.webp"])
    def test_supported(self, name):
        assert is_image(name)

    @pytest.mark.parametrize("name", ["a.gif", "a.txt", "jpg", "a.jpg.bak", "README"])
    def test_unsupported(self, name):
        assert not is_image(name)


class TestScanDirectory:

    def test_finds_images_recursively(self, input_dir, write_file):
        write_file("001.png")
        write_file("ch1/002.jpg")
        write_file("ch1/sub/003.webp")
        write_file("notes.txt")

        found = scan_directory(input_dir)

        assert [c.relative_path for c in found] == ["001.png", "ch1/002.jpg", "ch1/sub/003.webp"]
        assert all(c.path.is_absolute() for c in found)
        assert all(isinstance(c, FileCandidate) for c in found)

    def test_excludes_hidden_output_and_error(self, input_dir, write_file):
        write_file("keep.png")
        write_file(".hidden.png")
        write_file(".thumbs/a.png")
        write_file("translated/keep.png")
        write_file("error/bad.png")
        write_file("vol_output/x.png")
        write_file("ch2/translated/y.png")

        found = scan_directory(input_dir)

        assert [c.relative_path for c in found] == ["keep.png"]

    def test_include_filter(self, input_dir, write_file):
        write_file("a/1.png")
        write_file("a/2.png")
        write_file("b/3.png")
        single = write_file("c/4.png")

        include = [str((input_dir / "a").resolve()), str(single.resolve())]
        found = scan_directory(input_dir, include=include)

        assert [c.relative_path for c in found] == ["a/1.png", "a/2.png", "c/4.png"]

    def test_empty_include_selects_nothing(self, input_dir, write_file):
        write_file("a.png")
        assert scan_directory(input_dir, include=[]) == []

    def test_empty_directory(self, input_dir):
        assert scan_directory(input_dir) == []

    def test_deterministic_order(self, input_dir, write_file):
        for name in ["c.png", "a.png", "b/z.png", "b/a.png"]:
            write_file(name)

        first = scan_directory(input_dir)
        second = scan_directory(input_dir)

        assert first == second
        assert [c.relative_path for c in first] == ["a.png", "c.png", "b/a.png", "b/z.png"]

    def test_output_path_mirrors_structure(self, input_dir, write_file, tmp_path):
        write_file("ch1/001.png")
        candidate = scan_directory(input_dir)[0]

        assert candidate.output_path(tmp_path / "out") == tmp_path / "out" / "ch1" / "001.png"

    @pytest.mark.skipif(sys.platform == "win32" or os.geteuid() == 0,
                        reason="permission bits not enforced")
    def test_unreadable_subdirectory_skipped(self, input_dir, write_file):
        write_file("ok.png")
        locked = input_dir / "locked"
        write_file("locked/hidden.png")
        locked.chmod(0)
        try:
            found = scan_directory(input_dir)
        finally:
            locked.chmod(0o755)

        assert [c.relative_path for c in found] == ["ok.png"]

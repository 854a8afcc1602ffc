"""Tests for file_handler.py."""

import pytest

from rulekeeper.file_handler import (
    copy_file,
    delete_file,
    ensure_dir,
    list_files,
    read_file_with_encoding,
)


class TestRead:
    def test_utf8(self, tmp_path):
        path = tmp_path / "rule.md"
        text = "# Règles partagées\n\nÉcrire des tests pour chaque modèle.\n"
        path.write_bytes(text.encode("utf-8"))

        content, _ = read_file_with_encoding(path)
        assert content == text

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.md"
        path.write_bytes(b"")
        assert read_file_with_encoding(path) == ("", "utf-8")


class TestCopyDelete:
    def test_copy_is_byte_exact(self, tmp_path):
        source = tmp_path / "a.md"
        source.write_bytes(b"line\r\nline\n")
        dest = tmp_path / "nested" / "b.md"

        copy_file(source, dest)

        assert dest.read_bytes() == b"line\r\nline\n"

    def test_copy_missing_source(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            copy_file(tmp_path / "nope.md", tmp_path / "b.md")

    def test_delete(self, tmp_path):
        path = tmp_path / "a.md"
        path.write_text("x")
        assert delete_file(path) is True
        assert delete_file(path) is False


class TestListing:
    def test_list_files(self, tmp_path):
        ensure_dir(tmp_path / "dir")
        (tmp_path / "dir" / "b.md").write_text("")
        (tmp_path / "dir" / "a.md").write_text("")
        (tmp_path / "dir" / "c.txt").write_text("")
        ensure_dir(tmp_path / "dir" / "sub.md")

        assert list_files(tmp_path / "dir", ".md") == ["a.md", "b.md"]
        assert list_files(tmp_path / "dir") == ["a.md", "b.md", "c.txt"]

    def test_missing_dir(self, tmp_path):
        assert list_files(tmp_path / "nope") == []

"""Tests for promptlab/file_context.py."""

import pytest

from promptlab.file_context import describe_file, get_file_content_prompts, read_text_file


class TestDescribeFile:
    def test_text_file(self, tmp_path):
        path = tmp_path / "hello.txt"
        path.write_text("hello", encoding="utf-8")
        block = describe_file(str(path))
        assert block.splitlines()[0] == "File: hello.txt"
        assert f"Path: {path}" in block
        assert "Size: 5 bytes" in block
        assert block.endswith("Contents:\nhello")

    def test_contents_are_truncated(self, tmp_path):
        path = tmp_path / "long.txt"
        path.write_text("x" * 100, encoding="utf-8")
        block = describe_file(str(path), max_chars=10)
        assert block.endswith("Contents:\n" + "x" * 10)

    def test_binary_file(self, tmp_path):
        path = tmp_path / "blob.bin"
        path.write_bytes(b"\x00\x01\x02")
        assert "Contents: (binary or unreadable)" in describe_file(str(path))

    def test_missing_file(self, tmp_path):
        block = describe_file(str(tmp_path / "gone.txt"))
        assert "Status: missing" in block

    def test_directory_lists_entries(self, tmp_path):
        (tmp_path / "b.txt").write_text("b")
        (tmp_path / "a.txt").write_text("a")
        block = describe_file(str(tmp_path))
        assert "Kind: directory" in block
        assert "Entries: a.txt, b.txt" in block


def test_read_text_file_handles_unreadable_path(tmp_path):
    assert read_text_file(tmp_path / "nope.txt") is None


@pytest.mark.asyncio
async def test_get_file_content_prompts_keeps_order(tmp_path):
    first = tmp_path / "one.txt"
    first.write_text("1")
    second = tmp_path / "two.txt"
    second.write_text("2")
    prompts = await get_file_content_prompts([str(first), str(second)])
    assert len(prompts) == 2
    assert prompts[0].startswith("File: one.txt")
    assert prompts[1].startswith("File: two.txt")

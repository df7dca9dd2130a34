"""Tests for the default substitution context."""

import getpass
from pathlib import Path

import pytest

from promptlab.placeholders import PlaceholderResolver
from promptlab.replacements import build_substitution_context


def test_builtin_keys_in_order():
    context = build_substitution_context()
    assert list(context) == [
        "{{selectedFiles}}",
        "{{fileNames}}",
        "{{contents}}",
        "{{date}}",
        "{{time}}",
        "{{day}}",
        "{{user}}",
        "{{homedir}}",
        "{{hostname}}",
    ]


def test_selected_files_and_names():
    context = build_substitution_context(["/tmp/a.txt", "/work/src/b.py"])
    assert context["{{selectedFiles}}"]() == "/tmp/a.txt, /work/src/b.py"
    assert context["{{fileNames}}"]() == "a.txt, b.py"


def test_no_files_gives_empty_strings():
    context = build_substitution_context()
    assert context["{{selectedFiles}}"]() == ""
    assert context["{{fileNames}}"]() == ""


def test_homedir():
    assert build_substitution_context()["{{homedir}}"]() == str(Path.home())


def test_extra_keys_override_builtins_and_move_last():
    context = build_substitution_context(extra={"{{date}}": lambda: "someday", "{{topic}}": lambda: "cats"})
    assert context["{{date}}"]() == "someday"
    assert list(context)[-2:] == ["{{date}}", "{{topic}}"]


def test_user_falls_back_to_environment(monkeypatch):
    def no_user():
        raise OSError("no passwd entry")

    monkeypatch.setattr(getpass, "getuser", no_user)
    monkeypatch.setenv("USER", "fallback")
    assert build_substitution_context()["{{user}}"]() == "fallback"


@pytest.mark.asyncio
async def test_contents_describes_selected_files(tmp_path):
    first = tmp_path / "a.txt"
    first.write_text("alpha", encoding="utf-8")
    second = tmp_path / "b.txt"
    second.write_text("beta", encoding="utf-8")

    contents = await build_substitution_context([str(first), str(second)])["{{contents}}"]()
    assert "File: a.txt" in contents
    assert "alpha" in contents
    assert "File: b.txt" in contents
    assert contents.index("alpha") < contents.index("beta")


@pytest.mark.asyncio
async def test_resolver_uses_context(tmp_path):
    resolver = PlaceholderResolver(handlers=[])
    context = build_substitution_context([str(tmp_path / "report.md")], {"{{topic}}": lambda: "sales"})
    result = await resolver.resolve("Review {{fileNames}} about {{topic}}", context)
    assert result == "Review report.md about sales"

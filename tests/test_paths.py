"""Tests for path and hierarchical-name helpers."""

from pathlib import Path

from notetree.vault.paths import (
    ancestors,
    depth,
    fname_to_path,
    has_note_ext,
    leaf_name,
    normalize_slashes,
    parent_fname,
    path_to_fname,
    sort_paths,
    strip_ext,
)


def test_sort_paths_directories_shallow_first():
    assert sort_paths(["a/b/c.md", "a/b.md", "a.md"]) == ["a.md", "a/b.md", "a/b/c.md"]


def test_sort_paths_dot_depth_before_lexical():
    assert sort_paths(["a.b.md", "b.md", "a.md"]) == ["a.md", "b.md", "a.b.md"]


def test_sort_paths_with_key():
    items = [{"name": "x.y"}, {"name": "z"}]
    assert sort_paths(items, key=lambda i: i["name"]) == [{"name": "z"}, {"name": "x.y"}]


def test_depth_ignores_extension():
    assert depth("a.b.md") == (0, 1)
    assert depth("dir/a.md") == (1, 0)


def test_fname_to_path_and_back():
    vault = Path("/vault")
    assert fname_to_path(vault, "a.b.c") == Path("/vault/a.b.c.md")
    assert path_to_fname("/vault/a.b.c.md") == "a.b.c"


def test_path_to_fname_relative_to_base():
    assert path_to_fname("/vault/sub/x.md", base_path="/vault") == "sub/x"
    assert path_to_fname("/vault/sub/x.md", base_path="/vault", keep_ext=True) == "sub/x.md"


def test_path_to_fname_outside_base_uses_basename():
    assert path_to_fname("/elsewhere/x.md", base_path="/vault") == "x"


def test_has_note_ext_case_insensitive():
    assert has_note_ext("Note.MD")
    assert not has_note_ext("note.txt")
    assert not has_note_ext("root.schema.yml")


def test_strip_ext():
    assert strip_ext("foo.bar.md") == "foo.bar"
    assert strip_ext("foo.bar") == "foo.bar"


def test_name_helpers():
    assert normalize_slashes("a\\b\\c.md") == "a/b/c.md"
    assert leaf_name("a.b.c") == "c"
    assert parent_fname("a.b.c") == "a.b"
    assert parent_fname("a") is None
    assert ancestors("a.b.c") == ["a", "a.b"]
    assert ancestors("a") == []

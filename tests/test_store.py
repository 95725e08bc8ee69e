"""Tests for the flat-file store."""

from pathlib import Path

import pytest

from notetree.errors import NoteParseError, SchemaParseError, StorageError
from notetree.models import Note, Schema, SchemaModule
from notetree.vault.store import FileStore, module_from_text, note_from_text

from .conftest import write_note


async def test_note_write_then_read_keeps_metadata(tmp_path: Path):
    store = FileStore(tmp_path)
    note = Note(fname="foo.bar", id="abc", desc="a note", body="Hello [[root]]\n", custom={"tags": ["x", "y"]})

    path = await store.write_note(note)
    loaded = await store.read_note(path)

    assert path == tmp_path / "foo.bar.md"
    assert loaded.fname == "foo.bar"
    assert loaded.id == "abc"
    assert loaded.title == "bar"
    assert loaded.desc == "a note"
    assert loaded.custom == {"tags": ["x", "y"]}
    assert "Hello [[root]]" in loaded.body
    assert loaded.created == note.created


def test_note_without_frontmatter_gets_id():
    note = note_from_text("just a body\n", Path("/v/plain.md"))
    assert note.fname == "plain"
    assert note.id
    assert note.body.strip() == "just a body"


def test_malformed_frontmatter_is_a_parse_error():
    with pytest.raises(NoteParseError):
        note_from_text("---\nbar:\n--\nfoo", Path("/v/foo.md"))


def test_invalid_yaml_frontmatter_is_a_parse_error():
    with pytest.raises(NoteParseError):
        note_from_text("---\nid: [unclosed\n---\nbody\n", Path("/v/foo.md"))


async def test_list_note_files_skips_schemas_and_hidden(tmp_path: Path):
    write_note(tmp_path, "root")
    write_note(tmp_path, "foo")
    (tmp_path / "root.schema.yml").write_text("version: 1\nschemas: []\n")
    (tmp_path / ".hidden.md").write_text("x")
    (tmp_path / "readme.txt").write_text("x")
    (tmp_path / "dir.md").mkdir()
    store = FileStore(tmp_path)

    assert [p.name for p in await store.list_note_files()] == ["foo.md", "root.md"]
    assert [p.name for p in await store.list_schema_files()] == ["root.schema.yml"]


async def test_read_text_returns_none_for_non_notes(tmp_path: Path):
    (tmp_path / "dir.md").mkdir()
    (tmp_path / "other.txt").write_text("[[x]]")
    note_path = write_note(tmp_path, "foo", "[[x]]")
    store = FileStore(tmp_path)

    assert await store.read_text(tmp_path / "missing.md") is None
    assert await store.read_text(tmp_path / "dir.md") is None
    assert await store.read_text(tmp_path / "other.txt") is None
    assert "[[x]]" in await store.read_text(note_path)


async def test_read_missing_note_is_a_storage_error(tmp_path: Path):
    store = FileStore(tmp_path)
    with pytest.raises(StorageError):
        await store.read_note(tmp_path / "nope.md")


async def test_schema_module_write_then_read(tmp_path: Path):
    store = FileStore(tmp_path)
    module = SchemaModule.create(
        "foo",
        [Schema(id="foo", parent="root", children=["ch1"]), Schema(id="ch1", pattern="ch*", data={"template": "t"})],
    )

    path = await store.write_schema_module(module)
    loaded = await store.read_schema_module(path)

    assert path.name == "foo.schema.yml"
    assert loaded.fname == "foo"
    assert list(loaded.schemas) == ["foo", "ch1"]
    assert loaded.schemas["foo"].children == ["ch1"]
    assert loaded.schemas["ch1"].pattern == "ch*"
    assert loaded.schemas["ch1"].data == {"template": "t"}


def test_schema_without_list_is_a_parse_error():
    with pytest.raises(SchemaParseError):
        module_from_text("version: 1\n", Path("/v/foo.schema.yml"), "foo")


def test_schema_entry_without_id_is_a_parse_error():
    with pytest.raises(SchemaParseError):
        module_from_text("version: 1\nschemas:\n  - title: nameless\n", Path("/v/foo.schema.yml"), "foo")


def test_schema_yaml_error_is_a_parse_error():
    with pytest.raises(SchemaParseError):
        module_from_text("schemas: [\n", Path("/v/foo.schema.yml"), "foo")

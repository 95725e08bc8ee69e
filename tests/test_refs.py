"""Tests for ref resolution and the dangling-reference cache."""

from pathlib import Path

from notetree.models import Note
from notetree.vault.hierarchy import build_hierarchy
from notetree.vault.refs import (
    RefIndex,
    collect_dangling,
    compute_workspace_cache,
    extract_dangling_refs,
    find_dangling_refs_by_path,
    update_workspace_cache,
)
from notetree.vault.store import FileStore

from .conftest import write_note


def _index(*fnames: str, stubs: tuple[str, ...] = ()) -> RefIndex:
    notes = [Note(fname=f) for f in fnames] + [Note.create_stub(f) for f in stubs]
    return RefIndex(notes)


def _reader(contents: dict[Path, str]):
    async def read(path: Path) -> str | None:
        return contents.get(path)

    return read


def test_resolve_by_fname_and_leaf():
    index = _index("root", "existingnote", "foo.bar")

    assert index.resolve("ExistingNote").fname == "existingnote"
    assert index.resolve("existingnote.md").fname == "existingnote"
    assert index.resolve("foo.bar").fname == "foo.bar"
    assert index.resolve("bar").fname == "foo.bar"
    assert index.resolve("nope") is None


def test_resolve_counts_stubs_as_known():
    index = _index("root", "foo.ch1", stubs=("foo",))
    assert "foo" in index


def test_resolve_full_fname_beats_leaf():
    index = _index("a.x", "x")
    assert index.resolve("x").fname == "x"


def test_resolve_leaf_ties_pick_shallowest():
    index = _index("b.c.x", "b.x", "a.x")
    assert index.resolve("x").fname == "a.x"


def test_dangling_refs_deduplicated_per_file():
    """Refs differing only by case are distinct dangling entries."""
    index = _index("root", "existingnote")
    content = "[[NonExistentNote]] [[nonexistentnote]] [[ExistingNote]] [[NonExistentNote]]"

    assert extract_dangling_refs(content, index) == ["NonExistentNote", "nonexistentnote"]


async def test_find_dangling_only_keeps_files_with_hits(tmp_path: Path):
    a, b, c = tmp_path / "a.md", tmp_path / "b.md", tmp_path / "c.md"
    read = _reader({a: "[[ghost]]", b: "[[root]]"})

    result = await find_dangling_refs_by_path([a, b, c], _index("root"), read)

    assert result == {a: ["ghost"]}


def test_collect_dangling_orders_by_first_file_then_ref(tmp_path: Path):
    by_path = {
        tmp_path / "b.md": ["z", "y"],
        tmp_path / "a.b.md": ["w"],
        tmp_path / "a.md": ["y", "x"],
    }
    assert collect_dangling(by_path) == ["x", "y", "z", "w"]


async def test_compute_workspace_cache_from_files(vault_path: Path):
    write_note(vault_path, "existingnote", "fine")
    write_note(vault_path, "a.b", "[[missing]] and [[existingnote]]")
    write_note(vault_path, "z", "[[missing]] [[other]]")
    store = FileStore(vault_path)
    notes, _ = build_hierarchy([await store.read_note(p) for p in await store.list_note_files()])

    cache = await compute_workspace_cache(notes, vault_path, store.read_text)

    # the stub "a" has no file
    assert [p.name for p in cache.markdown_paths] == ["existingnote.md", "root.md", "z.md", "a.b.md"]
    assert cache.dangling_refs_by_path == {
        vault_path / "a.b.md": ["missing"],
        vault_path / "z.md": ["missing", "other"],
    }
    assert cache.dangling_refs == ["missing", "other"]


async def test_update_workspace_cache_drops_resolved_refs(vault_path: Path):
    write_note(vault_path, "a", "[[missing]] [[gone]]")
    store = FileStore(vault_path)
    notes, _ = build_hierarchy([await store.read_note(p) for p in await store.list_note_files()])
    cache = await compute_workspace_cache(notes, vault_path, store.read_text)
    assert cache.dangling_refs == ["gone", "missing"]

    new_path = write_note(vault_path, "missing", "[[another]]")
    new = await store.read_note(new_path)
    notes[new.id] = new

    updated = await update_workspace_cache(cache, notes, vault_path, [new_path], store.read_text)

    assert updated.dangling_refs_by_path == {
        vault_path / "a.md": ["gone"],
        vault_path / "missing.md": ["another"],
    }
    assert updated.dangling_refs == ["gone", "another"]

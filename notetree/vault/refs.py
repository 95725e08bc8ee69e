"""Cross-reference cache: link resolution and dangling-reference detection.

The cache is derived state. It is rebuilt from the note set and file
contents, held by whoever owns the notes, and never treated as a source of
truth.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Iterable

from ..models import Note
from .parser import extract_refs
from .paths import NOTE_EXT, fname_to_path, sort_paths, strip_ext

ReadFn = Callable[[Path], Awaitable[str | None]]


class RefIndex:
    """Resolve refs against known notes (stubs included).

    A ref matches a note's full fname or its leaf segment, case-insensitively
    and ignoring a trailing note extension. When several notes share a leaf
    name, a full-fname match wins, then the shallowest note in shallow-first
    order.
    """

    def __init__(self, notes: Iterable[Note], ext: str = NOTE_EXT):
        self.ext = ext
        self._by_fname: dict[str, Note] = {}
        self._by_leaf: dict[str, Note] = {}
        for note in sort_paths(notes, key=lambda n: n.fname, ext=ext):
            self._by_fname.setdefault(note.fname.lower(), note)
            self._by_leaf.setdefault(note.leaf.lower(), note)

    def _key(self, ref: str) -> str:
        return strip_ext(ref.strip(), self.ext).lower()

    def resolve(self, ref: str) -> Note | None:
        key = self._key(ref)
        return self._by_fname.get(key) or self._by_leaf.get(key)

    def __contains__(self, ref: str) -> bool:
        return self.resolve(ref) is not None


@dataclass
class WorkspaceCache:
    markdown_paths: list[Path] = field(default_factory=list)  # real notes, shallow-first
    dangling_refs_by_path: dict[Path, list[str]] = field(default_factory=dict)
    dangling_refs: list[str] = field(default_factory=list)  # vault-wide, deduplicated


def extract_dangling_refs(content: str, index: RefIndex) -> list[str]:
    """Unresolved refs in ``content``, each once, in order of first appearance."""
    seen: dict[str, None] = {}
    for ref in extract_refs(content):
        if ref.ref not in seen and index.resolve(ref.ref) is None:
            seen[ref.ref] = None
    return list(seen)


async def find_dangling_refs_by_path(
    paths: Iterable[Path],
    index: RefIndex,
    read: ReadFn,
) -> dict[Path, list[str]]:
    """Scan files concurrently; only files with dangling refs appear in the result.

    ``read`` returns None for paths that should be skipped (missing,
    directories, not note files).
    """
    paths = list(paths)

    async def scan(path: Path) -> list[str] | None:
        content = await read(path)
        if content is None:
            return None
        return extract_dangling_refs(content, index)

    results = await asyncio.gather(*(scan(p) for p in paths))
    return {path: refs for path, refs in zip(paths, results) if refs}


def collect_dangling(by_path: dict[Path, list[str]], ext: str = NOTE_EXT) -> list[str]:
    """Union of per-file refs, deduplicated.

    Ordered by the shallow-first position of the first file containing each
    ref, then by the ref's own shallow-first key.
    """
    ordered: dict[str, None] = {}
    for path in sort_paths(by_path, ext=ext):
        for ref in sort_paths(by_path[path], ext=ext):
            ordered.setdefault(ref, None)
    return list(ordered)


def note_paths(notes: dict[str, Note], vault_path: Path, ext: str = NOTE_EXT) -> list[Path]:
    return sort_paths(
        (fname_to_path(vault_path, n.fname, ext) for n in notes.values() if not n.stub),
        ext=ext,
    )


async def compute_workspace_cache(
    notes: dict[str, Note],
    vault_path: Path,
    read: ReadFn,
    ext: str = NOTE_EXT,
) -> WorkspaceCache:
    """Full rebuild: enumerate note files, then scan them, then aggregate."""
    markdown_paths = note_paths(notes, vault_path, ext)
    index = RefIndex(notes.values(), ext)
    by_path = await find_dangling_refs_by_path(markdown_paths, index, read)
    return WorkspaceCache(
        markdown_paths=markdown_paths,
        dangling_refs_by_path=by_path,
        dangling_refs=collect_dangling(by_path, ext),
    )


async def update_workspace_cache(
    cache: WorkspaceCache,
    notes: dict[str, Note],
    vault_path: Path,
    changed: Iterable[Path],
    read: ReadFn,
    ext: str = NOTE_EXT,
) -> WorkspaceCache:
    """Rescan only ``changed`` files.

    Entries for other files are re-checked against the current notes without
    I/O, so refs that a newly written note resolves drop out. Only valid when
    notes were added or replaced; removals need a full rebuild.
    """
    markdown_paths = note_paths(notes, vault_path, ext)
    index = RefIndex(notes.values(), ext)
    known = set(markdown_paths)
    targets = [p for p in changed if p in known]
    fresh = await find_dangling_refs_by_path(targets, index, read)

    by_path: dict[Path, list[str]] = {}
    for path in markdown_paths:
        if path in fresh:
            by_path[path] = fresh[path]
        elif path in targets:
            continue
        elif path in cache.dangling_refs_by_path:
            still = [r for r in cache.dangling_refs_by_path[path] if index.resolve(r) is None]
            if still:
                by_path[path] = still

    return WorkspaceCache(
        markdown_paths=markdown_paths,
        dangling_refs_by_path=by_path,
        dangling_refs=collect_dangling(by_path, ext),
    )

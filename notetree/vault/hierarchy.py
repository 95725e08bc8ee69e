"""Parent/child tree of notes keyed by dot-delimited name.

Every ancestor prefix of a note's fname must exist as a note. Missing ones are
synthesized as stubs; the root itself never is.
"""

from typing import Iterator

from ..errors import NoRootNoteFound
from ..models import ROOT_FNAME, Finding, Note, gen_id
from .paths import ancestors, sort_paths


def _link(parent: Note, child: Note) -> None:
    child.parent = parent.id
    if child.id not in parent.children:
        parent.children.append(child.id)


def get_note_by_fname(notes: dict[str, Note], fname: str) -> Note | None:
    for note in notes.values():
        if note.fname == fname:
            return note
    return None


def get_root(notes: dict[str, Note]) -> Note:
    root = get_note_by_fname(notes, ROOT_FNAME)
    if root is None or root.stub:
        raise NoRootNoteFound("No root note found in vault")
    return root


def _attach(notes: dict[str, Note], by_fname: dict[str, Note], root: Note, note: Note) -> list[Note]:
    """Link ``note`` below its closest ancestor, creating stubs for gaps."""
    stubs = []
    parent = root
    for prefix in ancestors(note.fname):
        existing = by_fname.get(prefix)
        if existing is None:
            existing = Note.create_stub(prefix)
            notes[existing.id] = existing
            by_fname[prefix] = existing
            _link(parent, existing)
            stubs.append(existing)
        parent = existing

    notes[note.id] = note
    by_fname[note.fname] = note
    _link(parent, note)
    return stubs


def build_hierarchy(loaded: list[Note]) -> tuple[dict[str, Note], list[Finding]]:
    """Assemble loaded notes into a gap-free tree.

    Notes are attached in shallow-first order of their fname (fewer dots
    first, then lexical), whatever order ``loaded`` is in, so a real parent
    is always placed before its children. Each node is appended to its
    parent's children as it is attached, so siblings follow that order; a
    stub is created, and placed, when the first descendant needing it is
    attached. Input order only decides which of two duplicates wins.

    Args:
        loaded: Notes read from the vault (stub flag false)

    Returns:
        (notes keyed by id, findings for duplicate names or ids)

    Raises:
        NoRootNoteFound: no loaded note is named ``root``
    """
    findings: list[Finding] = []
    unique: list[Note] = []
    seen_fnames: set[str] = set()
    seen_ids: set[str] = set()

    for note in loaded:
        if note.fname in seen_fnames:
            findings.append(
                Finding(
                    level="error",
                    rule="duplicate-note",
                    fname=note.fname,
                    message="Another file already maps to this name; ignored",
                )
            )
            continue
        if note.id in seen_ids:
            findings.append(
                Finding(
                    level="warning",
                    rule="duplicate-id",
                    fname=note.fname,
                    message=f"Id '{note.id}' is already used; assigned a new id",
                )
            )
            note.id = gen_id()
        seen_fnames.add(note.fname)
        seen_ids.add(note.id)
        note.parent = None
        note.children = []
        unique.append(note)

    root = next((n for n in unique if n.fname == ROOT_FNAME), None)
    if root is None:
        raise NoRootNoteFound("No root note found in vault")

    notes: dict[str, Note] = {root.id: root}
    by_fname: dict[str, Note] = {root.fname: root}

    for note in sort_paths(unique, key=lambda n: n.fname):
        if note is root:
            continue
        _attach(notes, by_fname, root, note)

    return notes, findings


def _swap_node(notes: dict[str, Note], old: Note, new: Note) -> None:
    """Put ``new`` in ``old``'s place: same parent slot, same children."""
    new.parent = old.parent
    new.children = list(old.children)
    del notes[old.id]
    notes[new.id] = new
    parent = notes.get(old.parent) if old.parent else None
    if parent is not None:
        parent.children = [new.id if c == old.id else c for c in parent.children]
    for child_id in new.children:
        child = notes.get(child_id)
        if child is not None:
            child.parent = new.id


def upsert_note(notes: dict[str, Note], note: Note, keep_id: bool = False) -> list[Note]:
    """Insert or replace one note in an existing tree.

    A note whose fname already exists takes over that node's parent and
    children; a stub at that fname is promoted to a real note. The existing
    id is kept unless ``keep_id`` is set, in which case ``note.id`` replaces
    it.

    Returns:
        Stubs created to fill gaps above a new note
    """
    existing = get_note_by_fname(notes, note.fname)
    if existing is not None:
        note.stub = False
        if keep_id and existing.id != note.id:
            _swap_node(notes, existing, note)
            return []
        note.id = existing.id
        note.parent = existing.parent
        note.children = list(existing.children)
        notes[note.id] = note
        return []

    root = get_root(notes)
    by_fname = {n.fname: n for n in notes.values()}
    note.children = []
    return _attach(notes, by_fname, root, note)


def remove_note(notes: dict[str, Note], note: Note, keep_id: bool = True) -> list[Note]:
    """Drop a note whose backing file is gone.

    A note that still has children stays as a stub, with the same id unless
    ``keep_id`` is false (a fresh stub then takes its place and the id is
    free for reuse). Otherwise it is removed, along with stub ancestors left
    without children.

    Returns:
        Notes removed from the tree
    """
    if note.children:
        if not keep_id:
            _swap_node(notes, note, Note.create_stub(note.fname))
            return [note]
        note.stub = True
        note.path = None
        note.body = ""
        note.custom = {}
        return []

    removed = [notes.pop(note.id)]
    parent = notes.get(note.parent) if note.parent else None
    if parent is not None and note.id in parent.children:
        parent.children.remove(note.id)

    while parent is not None and parent.stub and not parent.children:
        removed.append(notes.pop(parent.id))
        grand = notes.get(parent.parent) if parent.parent else None
        if grand is not None:
            grand.children.remove(parent.id)
        parent = grand

    return removed


def iter_tree(notes: dict[str, Note], start: Note) -> Iterator[tuple[int, Note]]:
    """Depth-first walk yielding (depth, note), children in insertion order."""
    stack = [(0, start)]
    while stack:
        level, node = stack.pop()
        yield level, node
        for child_id in reversed(node.children):
            child = notes.get(child_id)
            if child is not None:
                stack.append((level + 1, child))

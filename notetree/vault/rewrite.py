"""Batch rewriting of ``[[...]]`` links when notes are renamed."""

from dataclasses import dataclass
from typing import Callable, Iterable

from .parser import REF_PATTERN, parse_ref

Hook = Callable[[], None]


@dataclass(frozen=True)
class Rename:
    old: str
    new: str

    @property
    def is_noop(self) -> bool:
        return self.old == self.new


def format_ref(ref: str, label: str | None = None) -> str:
    if label:
        return f"[[{label}|{ref}]]"
    return f"[[{ref}]]"


def _rewrite_one(content: str, rename: Rename, on_match: Hook | None, on_replace: Hook | None) -> tuple[str, bool]:
    target = rename.old.strip().lower()
    matched = False

    def substitute(match) -> str:
        nonlocal matched
        ref = parse_ref(match.group(1))
        if ref.ref.lower() != target:
            return match.group(0)
        if not matched and on_match:
            on_match()
        matched = True
        if on_replace:
            on_replace()
        return format_ref(rename.new, ref.label if ref.has_label else None)

    return REF_PATTERN.sub(substitute, content), matched


def replace_refs(
    content: str,
    renames: Iterable[Rename],
    on_match: Hook | None = None,
    on_replace: Hook | None = None,
) -> str | None:
    """Rewrite links to renamed notes, keeping explicit labels.

    ``[[Old]]`` becomes ``[[New]]`` and ``[[label|Old]]`` becomes
    ``[[label|New]]``. Matching is case-insensitive. Pairs are applied in
    order, each to the output of the previous one.

    Args:
        content: Text to rewrite
        renames: Ordered (old, new) pairs; pairs with old == new are skipped
        on_match: Called once per pair, on its first match
        on_replace: Called for every replaced token

    Returns:
        The rewritten text, or None when no pair matched anything
    """
    updated_once = False
    next_content = content
    for rename in renames:
        if rename.is_noop:
            continue
        next_content, matched = _rewrite_one(next_content, rename, on_match, on_replace)
        updated_once = updated_once or matched
    return next_content if updated_once else None

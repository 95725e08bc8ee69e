"""Path and hierarchical-name helpers."""

from pathlib import Path
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")

NOTE_EXT = ".md"


def has_note_ext(path: str | Path, ext: str = NOTE_EXT) -> bool:
    """Case-insensitive check of a file's extension."""
    return Path(path).suffix.lower() == ext.lower()


def normalize_slashes(value: str) -> str:
    return value.replace("\\", "/")


def trim_leading_slash(value: str) -> str:
    return value.lstrip("/\\")


def strip_ext(name: str, ext: str = NOTE_EXT) -> str:
    if name.lower().endswith(ext.lower()):
        return name[: -len(ext)]
    return name


def fname_to_path(vault_path: Path, fname: str, ext: str = NOTE_EXT) -> Path:
    """``a.b.c`` -> ``<vault>/a.b.c.md``."""
    return vault_path / f"{fname}{ext}"


def path_to_fname(
    path: str | Path,
    base_path: str | Path | None = None,
    keep_ext: bool = False,
) -> str:
    """Convert a file path back to a note name.

    Relative to ``base_path`` when the path lives under it, otherwise only the
    basename is used.
    """
    raw = normalize_slashes(str(path))
    base = normalize_slashes(str(base_path)) if base_path is not None else None

    if base and raw.startswith(base):
        ref = raw[len(base):]
    else:
        ref = raw.rsplit("/", 1)[-1]

    ref = trim_leading_slash(ref)
    if keep_ext:
        return ref
    return ref[: ref.rindex(".")] if "." in ref.rsplit("/", 1)[-1] else ref


def leaf_name(fname: str) -> str:
    return fname.rsplit(".", 1)[-1]


def parent_fname(fname: str) -> str | None:
    if "." not in fname:
        return None
    return fname.rsplit(".", 1)[0]


def ancestors(fname: str) -> list[str]:
    """Every strict dot prefix of ``fname``, shortest first.

    >>> ancestors("a.b.c")
    ['a', 'a.b']
    """
    parts = fname.split(".")
    return [".".join(parts[:i]) for i in range(1, len(parts))]


def depth(value: str | Path, ext: str = NOTE_EXT) -> tuple[int, int]:
    """(directory depth, dotted-name depth) of a path or name."""
    parts = normalize_slashes(str(value)).strip("/").split("/")
    name = strip_ext(parts[-1], ext)
    return len(parts) - 1, name.count(".")


def shallow_first_key(value: str | Path, ext: str = NOTE_EXT) -> tuple[int, int, str]:
    dirs, dots = depth(value, ext)
    return dirs, dots, normalize_slashes(str(value))


def sort_paths(
    items: Iterable[T],
    key: Callable[[T], str | Path] | None = None,
    ext: str = NOTE_EXT,
) -> list[T]:
    """Order paths shallow-first, ties broken lexically.

    ``a.md`` < ``a/b.md`` < ``a/b/c.md``, and ``a.md`` < ``a.b.md``.
    """
    get = key or (lambda item: item)
    return sorted(items, key=lambda item: shallow_first_key(get(item), ext))

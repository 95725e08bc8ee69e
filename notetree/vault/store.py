"""Persistence boundary: reading and writing notes and schema modules.

The engine goes through a ``Store`` for every persisted read or write. The
store keeps no vault state between calls, so it can be swapped for another
backing format or a test double.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import frontmatter
import yaml

from ..config import EngineConfig
from ..errors import NoteParseError, SchemaParseError, StorageError
from ..models import Note, Schema, SchemaModule, gen_id, now_ms
from ..util import atomic_write_text, run_in_thread
from .paths import fname_to_path, has_note_ext, strip_ext

logger = logging.getLogger(__name__)

NOTE_KEYS = ("id", "title", "desc", "updated", "created")
SCHEMA_KEYS = ("id", "parent", "children", "pattern", "title", "desc")


class Store(ABC):
    """Async interface the engine uses for all persisted reads and writes."""

    @abstractmethod
    async def list_note_files(self) -> list[Path]: ...

    @abstractmethod
    async def list_schema_files(self) -> list[Path]: ...

    @abstractmethod
    async def read_note(self, path: Path) -> Note: ...

    @abstractmethod
    async def write_note(self, note: Note) -> Path: ...

    @abstractmethod
    async def delete_note(self, note: Note) -> None: ...

    @abstractmethod
    async def read_schema_module(self, path: Path) -> SchemaModule: ...

    @abstractmethod
    async def write_schema_module(self, module: SchemaModule) -> Path: ...

    @abstractmethod
    async def delete_schema_module(self, module: SchemaModule) -> None: ...

    @abstractmethod
    async def read_text(self, path: Path) -> str | None:
        """Raw file text, or None when the path is missing, a directory or not a note file.

        Raises:
            NoteParseError: the file is not valid UTF-8
        """

    @abstractmethod
    async def write_text(self, path: Path, text: str) -> None: ...


def _coerce_ts(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return now_ms()


def note_from_text(text: str, path: Path, ext: str = ".md") -> Note:
    """Parse frontmatter + body into a Note.

    Raises:
        NoteParseError: the frontmatter block is malformed.
    """
    try:
        post = frontmatter.loads(text)
    except (ValueError, yaml.YAMLError) as e:
        raise NoteParseError(f"Failed to parse frontmatter of {path.name}: {e}", path=str(path)) from e

    meta = dict(post.metadata)
    note_id = meta.pop("id", None)
    title = meta.pop("title", None)
    desc = meta.pop("desc", None)
    created = meta.pop("created", None)
    updated = meta.pop("updated", None)

    return Note(
        fname=strip_ext(path.name, ext),
        id=str(note_id) if note_id else gen_id(),
        title=str(title) if title else "",
        desc=str(desc) if desc else "",
        body=post.content,
        created=_coerce_ts(created),
        updated=_coerce_ts(updated),
        custom=meta,
        path=path,
    )


def note_to_text(note: Note) -> str:
    post = frontmatter.Post(note.body)
    post.metadata.update(
        {
            "id": note.id,
            "title": note.title,
            "desc": note.desc,
            "updated": note.updated,
            "created": note.created,
        }
    )
    for key, value in note.custom.items():
        if key not in NOTE_KEYS:
            post.metadata[key] = value
    return frontmatter.dumps(post, sort_keys=False) + "\n"


def module_from_text(text: str, path: Path, fname: str) -> SchemaModule:
    """Parse a YAML schema module.

    Raises:
        SchemaParseError: not YAML, or not shaped like ``{version, schemas: [...]}``.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SchemaParseError(f"Failed to parse schema {path.name}: {e}", path=str(path)) from e

    if not isinstance(data, dict) or not isinstance(data.get("schemas"), list):
        raise SchemaParseError(f"Schema {path.name} must define a 'schemas' list", path=str(path))

    try:
        version = int(data.get("version", 1))
    except (TypeError, ValueError) as e:
        raise SchemaParseError(f"Schema {path.name} has an invalid version", path=str(path)) from e

    schemas = []
    for raw in data["schemas"]:
        if not isinstance(raw, dict) or not str(raw.get("id", "")).strip():
            raise SchemaParseError(f"Schema {path.name} has an entry without an id", path=str(path))

        children = raw.get("children") or []
        if isinstance(children, str):
            children = [children]

        parent = raw.get("parent")
        schemas.append(
            Schema(
                id=str(raw["id"]).strip(),
                fname=fname,
                pattern=str(raw.get("pattern") or ""),
                parent=str(parent) if parent else None,
                children=[str(c) for c in children],
                title=str(raw.get("title") or ""),
                desc=str(raw.get("desc") or ""),
                data={k: v for k, v in raw.items() if k not in SCHEMA_KEYS},
            )
        )

    module = SchemaModule.create(fname, schemas, version=version)
    module.path = path
    return module


def module_to_text(module: SchemaModule) -> str:
    schemas = []
    for schema in module.schemas.values():
        entry: dict[str, Any] = {"id": schema.id}
        if schema.parent:
            entry["parent"] = schema.parent
        if schema.children:
            entry["children"] = list(schema.children)
        if schema.pattern != schema.id:
            entry["pattern"] = schema.pattern
        if schema.title != schema.id:
            entry["title"] = schema.title
        if schema.desc:
            entry["desc"] = schema.desc
        entry.update(schema.data)
        schemas.append(entry)
    return yaml.safe_dump({"version": module.version, "schemas": schemas}, sort_keys=False)


class FileStore(Store):
    """Flat-file vault: ``a.b.c.md`` notes and ``name.schema.yml`` modules."""

    def __init__(self, vault_path: Path, config: EngineConfig | None = None):
        self.vault_path = vault_path
        self.config = config or EngineConfig()

    @property
    def ext(self) -> str:
        return self.config.note_extension

    def note_path(self, fname: str) -> Path:
        return fname_to_path(self.vault_path, fname, self.ext)

    def schema_path(self, fname: str) -> Path:
        return self.vault_path / f"{fname}{self.config.schema_suffix}"

    def _list(self, suffix: str) -> list[Path]:
        try:
            entries = sorted(self.vault_path.iterdir())
        except OSError as e:
            raise StorageError(f"Cannot list vault {self.vault_path}: {e}", path=str(self.vault_path)) from e
        return [
            p
            for p in entries
            if not p.name.startswith(".") and p.name.lower().endswith(suffix.lower()) and p.is_file()
        ]

    def _read(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}", path=str(path)) from e

    def _write(self, path: Path, text: str) -> None:
        try:
            atomic_write_text(path, text)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}", path=str(path)) from e

    async def list_note_files(self) -> list[Path]:
        suffix = self.config.schema_suffix.lower()
        paths = await run_in_thread(self._list, self.ext)
        return [p for p in paths if not p.name.lower().endswith(suffix)]

    async def list_schema_files(self) -> list[Path]:
        return await run_in_thread(self._list, self.config.schema_suffix)

    async def read_note(self, path: Path) -> Note:
        try:
            text = await run_in_thread(self._read, path)
        except UnicodeDecodeError as e:
            raise NoteParseError(f"{path.name} is not valid UTF-8", path=str(path)) from e
        return note_from_text(text, path, self.ext)

    async def write_note(self, note: Note) -> Path:
        path = self.note_path(note.fname)
        await run_in_thread(self._write, path, note_to_text(note))
        logger.debug("wrote note %s to %s", note.fname, path)
        return path

    def _unlink(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot delete {path}: {e}", path=str(path)) from e

    async def delete_note(self, note: Note) -> None:
        path = note.path or self.note_path(note.fname)
        await run_in_thread(self._unlink, path)
        logger.debug("deleted note %s", path)

    async def read_schema_module(self, path: Path) -> SchemaModule:
        try:
            text = await run_in_thread(self._read, path)
        except UnicodeDecodeError as e:
            raise SchemaParseError(f"{path.name} is not valid UTF-8", path=str(path)) from e
        fname = path.name[: -len(self.config.schema_suffix)]
        return module_from_text(text, path, fname)

    async def write_schema_module(self, module: SchemaModule) -> Path:
        path = self.schema_path(module.fname)
        await run_in_thread(self._write, path, module_to_text(module))
        module.path = path
        logger.debug("wrote schema module %s to %s", module.fname, path)
        return path

    async def delete_schema_module(self, module: SchemaModule) -> None:
        path = module.path or self.schema_path(module.fname)
        await run_in_thread(self._unlink, path)
        logger.debug("deleted schema module %s", path)

    async def read_text(self, path: Path) -> str | None:
        def _read_if_note() -> str | None:
            if not path.exists() or path.is_dir() or not has_note_ext(path, self.ext):
                return None
            return self._read(path)

        try:
            return await run_in_thread(_read_if_note)
        except UnicodeDecodeError as e:
            raise NoteParseError(f"{path.name} is not valid UTF-8", path=str(path)) from e

    async def write_text(self, path: Path, text: str) -> None:
        await run_in_thread(self._write, path, text)

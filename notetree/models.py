"""Data models for notes, schemas and references."""

import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

ROOT_FNAME = "root"


def gen_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Note:
    """A node of the note hierarchy, either file-backed or a stub."""

    fname: str  # dot-delimited hierarchical name, e.g. "a.b.c"
    id: str = field(default_factory=gen_id)
    title: str = ""
    desc: str = ""
    body: str = ""  # markdown after frontmatter
    created: int = field(default_factory=now_ms)
    updated: int = field(default_factory=now_ms)
    custom: dict[str, Any] = field(default_factory=dict)  # opaque frontmatter fields
    parent: str | None = None  # parent id
    children: list[str] = field(default_factory=list)  # child ids, insertion order
    stub: bool = False
    path: Path | None = None  # backing file, None for stubs

    def __post_init__(self):
        if not self.title:
            self.title = self.leaf

    @property
    def leaf(self) -> str:
        return self.fname.rsplit(".", 1)[-1]

    @property
    def is_root(self) -> bool:
        return self.fname == ROOT_FNAME

    @classmethod
    def create_stub(cls, fname: str) -> "Note":
        """A placeholder for a missing ancestor; carries no content or metadata."""
        return cls(fname=fname, stub=True)


@dataclass
class Finding:
    """A non-fatal structural finding (missing schema, duplicate note, ...)."""

    level: Literal["error", "warning", "info"]
    rule: str
    fname: str  # note fname or schema module fname
    message: str
    module: str | None = None  # owning schema module, when relevant

    def __str__(self) -> str:
        loc = self.fname if not self.module else f"{self.module}:{self.fname}"
        return f"{self.level.upper()}: [{self.rule}] {loc} - {self.message}"


@dataclass(frozen=True)
class Ref:
    """A parsed ``[[label|ref]]`` token."""

    ref: str  # lookup key
    label: str  # display text, equals ref when no divider is present
    has_label: bool = False


@dataclass
class Schema:
    """A single schema node inside a module."""

    id: str
    fname: str = ""  # name of the owning module file
    pattern: str = ""  # matches one hierarchical segment, globs allowed
    parent: str | None = None
    children: list[str] = field(default_factory=list)
    title: str = ""
    desc: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.pattern:
            self.pattern = self.id
        if not self.title:
            self.title = self.id


@dataclass
class SchemaModule:
    """A schema file: a version plus its schema nodes keyed by id."""

    fname: str
    version: int = 1
    schemas: dict[str, Schema] = field(default_factory=dict)
    path: Path | None = None
    duplicate_ids: list[str] = field(default_factory=list)  # ids dropped by create()

    @classmethod
    def create(cls, fname: str, schemas: list[Schema], version: int = 1) -> "SchemaModule":
        """Build a module from a list, keeping the first schema for each id."""
        module = cls(fname=fname, version=version)
        for schema in schemas:
            if not schema.fname:
                schema.fname = fname
            if schema.id in module.schemas:
                module.duplicate_ids.append(schema.id)
                continue
            module.schemas[schema.id] = schema
        return module

    @property
    def root(self) -> Schema | None:
        """The designated module root.

        The vault root module is rooted at the schema with id ``root``; every
        other module at the schema whose parent is ``root``.
        """
        root = self.schemas.get(ROOT_FNAME)
        if root is not None and root.parent is None:
            return root
        for schema in self.schemas.values():
            if schema.parent == ROOT_FNAME:
                return schema
        return None

    @property
    def root_id(self) -> str | None:
        root = self.root
        return root.id if root else None

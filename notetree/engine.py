"""Engine facade: owns the note tree, the schema modules and the workspace cache.

Every public operation is a coroutine returning ``Ok(data)`` or ``Err(error)``.
Expected failures (missing root, malformed files, storage errors) never
propagate as exceptions.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Iterable

from .audit_log import CreationSummary, ErasureCost, log_operation
from .config import EngineConfig, load_config
from .errors import EngineError, Err, ErrorCode, NotetreeError, Ok, Result
from .models import Finding, Note, SchemaModule, now_ms
from .util import run_in_thread
from .vault.hierarchy import build_hierarchy, get_note_by_fname, remove_note, upsert_note
from .vault.paths import fname_to_path, leaf_name, sort_paths
from .vault.refs import RefIndex, WorkspaceCache, compute_workspace_cache, update_workspace_cache
from .vault.rewrite import Rename, replace_refs
from .vault.schema import add_module, load_schema_modules, replace_module, validate_notes
from .vault.store import FileStore, Store

logger = logging.getLogger(__name__)

LiveContentFn = Callable[[Path], Awaitable[str | None]]
ErrorSink = Callable[[EngineError], None]


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass
class InitResult:
    notes: dict[str, Note]
    schemas: dict[str, SchemaModule]
    findings: list[Finding]


@dataclass
class WriteResult:
    note: Note
    stubs: list[Note] = field(default_factory=list)  # ancestors synthesized for a new note


@dataclass
class RenameReport:
    files_touched: list[Path] = field(default_factory=list)
    replacements: int = 0


@dataclass
class _LockSlot:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0  # holders plus waiters


def _log_error(error: EngineError) -> None:
    logger.warning("%s", error)


class Engine:
    """Loads a vault and keeps it queryable and consistent across writes."""

    def __init__(
        self,
        vault_path: Path,
        store: Store | None = None,
        config: EngineConfig | None = None,
        live_content: LiveContentFn | None = None,
        on_error: ErrorSink | None = None,
    ):
        self.vault_path = Path(vault_path)
        self.config = config or EngineConfig()
        self.store = store or FileStore(self.vault_path, self.config)
        self.live_content = live_content
        self.on_error = on_error or _log_error
        self.state = EngineState.UNINITIALIZED

        self._notes: dict[str, Note] = {}
        self._schemas: dict[str, SchemaModule] = {}
        self._structure_findings: list[Finding] = []
        self._schema_findings: dict[str, list[Finding]] = {}  # keyed by module fname
        self._validation_findings: list[Finding] = []
        self._cache = WorkspaceCache()

        # one in-flight write per note; fname maps 1:1 to id inside the tree
        self._write_locks: dict[str, _LockSlot] = {}
        self._claimed_ids: set[str] = set()  # ids of new notes with a write in flight
        self._tree_lock = asyncio.Lock()
        self._cache_lock = asyncio.Lock()
        self._schema_lock = asyncio.Lock()

    @classmethod
    def from_vault(cls, vault_path: Path, **kwargs) -> "Engine":
        """Create an engine configured from the vault's ``notetree.toml``.

        Raises:
            ValueError: the config file is invalid
        """
        vault_path = Path(vault_path)
        return cls(vault_path, config=load_config(vault_path), **kwargs)

    # -- accessors -----------------------------------------------------------

    @property
    def notes(self) -> dict[str, Note]:
        return self._notes

    @property
    def schemas(self) -> dict[str, SchemaModule]:
        return self._schemas

    @property
    def findings(self) -> list[Finding]:
        schema_findings = [f for key in self._schema_findings for f in self._schema_findings[key]]
        return self._structure_findings + schema_findings + self._validation_findings

    @property
    def workspace_cache(self) -> WorkspaceCache:
        return self._cache

    @property
    def ext(self) -> str:
        return self.config.note_extension

    def get_note(self, fname: str) -> Note | None:
        return get_note_by_fname(self._notes, fname)

    def resolve_ref(self, ref: str) -> Note | None:
        return RefIndex(self._notes.values(), self.ext).resolve(ref)

    # -- internals -------------------------------------------------------------

    def _report(self, code: ErrorCode, message: str, **payload) -> Err:
        error = EngineError(code=code, message=message, payload=payload)
        self.on_error(error)
        return Err(error)

    def _fail(self, exc: NotetreeError) -> Err:
        error = exc.to_error()
        self.on_error(error)
        return Err(error)

    def _require_ready(self) -> Err | None:
        if self.state is not EngineState.READY:
            return self._report(ErrorCode.ENGINE_NOT_READY, f"Engine is {self.state.value}, not ready")
        return None

    def _path(self, fname: str) -> Path:
        return fname_to_path(self.vault_path, fname, self.ext)

    async def _read_for_scan(self, path: Path) -> str | None:
        """File text for ref scanning; an open editor buffer wins over disk."""
        text = await self.store.read_text(path)
        if text is None:
            return None
        if self.live_content is not None:
            live = await self.live_content(path)
            if live is not None:
                return live
        return text

    def _revalidate(self) -> None:
        self._validation_findings = validate_notes(self._notes, self._schemas)

    async def _audit(
        self,
        operation: str,
        erased: ErasureCost | None = None,
        created: CreationSummary | None = None,
        metadata: dict | None = None,
    ) -> None:
        if not self.config.audit_log:
            return
        try:
            await run_in_thread(log_operation, self.vault_path, operation, erased, created, metadata)
        except OSError as e:
            logger.warning("could not append %s to audit log: %s", operation, e)

    @asynccontextmanager
    async def _note_lock(self, fname: str) -> AsyncIterator[None]:
        """Hold the write lock for one note; the slot is dropped once unused."""
        slot = self._write_locks.get(fname)
        if slot is None:
            slot = self._write_locks[fname] = _LockSlot()
        slot.users += 1
        try:
            async with slot.lock:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0:
                del self._write_locks[fname]

    async def _rebuild_cache(self) -> None:
        async with self._cache_lock:
            self._cache = await compute_workspace_cache(self._notes, self.vault_path, self._read_for_scan, self.ext)

    # -- lifecycle -------------------------------------------------------------

    async def init(self) -> Result[InitResult]:
        """Load the vault: notes, hierarchy, schema modules, validation, cache.

        Nothing is published unless every step succeeds.
        """
        if self.state is EngineState.LOADING:
            return self._report(ErrorCode.ENGINE_BUSY, "init already in progress for this vault")

        self.state = EngineState.LOADING
        try:
            note_paths, schema_paths = await asyncio.gather(
                self.store.list_note_files(),
                self.store.list_schema_files(),
            )
            loaded, modules = await asyncio.gather(
                asyncio.gather(*(self.store.read_note(p) for p in note_paths)),
                asyncio.gather(*(self.store.read_schema_module(p) for p in schema_paths)),
            )
            notes, structure_findings = build_hierarchy(list(loaded))
            schemas, schema_findings = load_schema_modules(list(modules))
            validation_findings = validate_notes(notes, schemas)
            cache = await compute_workspace_cache(notes, self.vault_path, self._read_for_scan, self.ext)
        except NotetreeError as e:
            self.state = EngineState.FAILED
            return self._fail(e)

        self._notes = notes
        self._schemas = schemas
        self._structure_findings = structure_findings
        self._schema_findings = {}
        for finding in schema_findings:
            self._schema_findings.setdefault(finding.module or "", []).append(finding)
        self._validation_findings = validation_findings
        self._cache = cache
        self.state = EngineState.READY

        logger.info(
            "loaded vault %s: %d notes (%d stubs), %d schema modules",
            self.vault_path,
            len(notes),
            sum(1 for n in notes.values() if n.stub),
            len(schemas),
        )
        return Ok(InitResult(notes=notes, schemas=schemas, findings=self.findings))

    async def refresh_workspace(self) -> Result[WorkspaceCache]:
        """Recompute the workspace cache from scratch."""
        if err := self._require_ready():
            return err
        try:
            await self._rebuild_cache()
        except NotetreeError as e:
            return self._fail(e)
        return Ok(self._cache)

    async def validate(self) -> Result[list[Finding]]:
        if err := self._require_ready():
            return err
        self._revalidate()
        return Ok(self.findings)

    # -- notes -----------------------------------------------------------------

    async def write_note(self, note: Note) -> Result[WriteResult]:
        """Persist a note and patch it into the tree.

        Writing at an existing fname keeps that node's id and children; a stub
        there becomes a real note.
        """
        if err := self._require_ready():
            return err

        async with self._note_lock(note.fname):
            existing = self.get_note(note.fname)
            if existing is not None:
                note.id = existing.id
            elif note.id in self._notes or note.id in self._claimed_ids:
                return self._report(
                    ErrorCode.NOTE_EXISTS,
                    f"Id '{note.id}' already belongs to another note",
                    id=note.id,
                )

            # no await between the check above and the claim
            self._claimed_ids.add(note.id)
            try:
                note.stub = False
                note.updated = now_ms()
                try:
                    note.path = await self.store.write_note(note)
                except NotetreeError as e:
                    return self._fail(e)

                async with self._tree_lock:
                    stubs = upsert_note(self._notes, note)
            finally:
                self._claimed_ids.discard(note.id)

            try:
                async with self._cache_lock:
                    self._cache = await update_workspace_cache(
                        self._cache, self._notes, self.vault_path, [self._path(note.fname)], self._read_for_scan, self.ext
                    )
            except NotetreeError as e:
                return self._fail(e)
            self._revalidate()

        promoted = existing is not None and existing.stub
        await self._audit(
            "note.write",
            created=CreationSummary(notes=0 if existing and not promoted else 1, stubs=len(stubs), files=1),
            metadata={"fname": note.fname, "id": note.id, "promoted": promoted},
        )
        return Ok(WriteResult(note=note, stubs=stubs))

    async def delete_note(self, fname: str) -> Result[list[Note]]:
        """Delete a note's file; it stays as a stub while it has children."""
        if err := self._require_ready():
            return err

        async with self._note_lock(fname):
            note = self.get_note(fname)
            if note is None or note.stub:
                return self._report(ErrorCode.NOTE_NOT_FOUND, f"No note named '{fname}'", fname=fname)
            if note.is_root:
                return self._report(ErrorCode.ROOT_NOTE_PROTECTED, "The root note cannot be deleted")

            try:
                await self.store.delete_note(note)
            except NotetreeError as e:
                return self._fail(e)

            async with self._tree_lock:
                removed = remove_note(self._notes, note)

            try:
                await self._rebuild_cache()
            except NotetreeError as e:
                return self._fail(e)
            self._revalidate()

        await self._audit(
            "note.delete",
            erased=ErasureCost(notes=len(removed), files=1),
            metadata={"fname": fname, "stubbed": not removed},
        )
        return Ok(removed)

    async def rename_note(self, old_fname: str, new_fname: str) -> Result[RenameReport]:
        """Move a note to a new name, keeping its id, and rewrite links to it."""
        if err := self._require_ready():
            return err

        async with AsyncExitStack() as stack:
            for key in sorted({old_fname, new_fname}):
                await stack.enter_async_context(self._note_lock(key))

            note = self.get_note(old_fname)
            if note is None or note.stub:
                return self._report(ErrorCode.NOTE_NOT_FOUND, f"No note named '{old_fname}'", fname=old_fname)
            if note.is_root:
                return self._report(ErrorCode.ROOT_NOTE_PROTECTED, "The root note cannot be renamed")
            target = self.get_note(new_fname)
            if target is not None and not target.stub:
                return self._report(ErrorCode.NOTE_EXISTS, f"A note named '{new_fname}' already exists", fname=new_fname)

            # bare [[leaf]] links follow the note only while the leaf resolves to it
            renames = [Rename(old_fname, new_fname)]
            leaf_links = note.leaf != old_fname and RefIndex(self._notes.values(), self.ext).resolve(note.leaf) is note

            title = note.title
            if title == note.leaf:
                title = leaf_name(new_fname)
            moved = dataclasses.replace(
                note,
                fname=new_fname,
                title=title,
                custom=dict(note.custom),
                parent=None,
                children=[],
                path=None,
                updated=now_ms(),
            )

            try:
                moved.path = await self.store.write_note(moved)
                await self.store.delete_note(note)
            except NotetreeError as e:
                return self._fail(e)

            async with self._tree_lock:
                remove_note(self._notes, note, keep_id=False)
                upsert_note(self._notes, moved, keep_id=True)

            if leaf_links and RefIndex(self._notes.values(), self.ext).resolve(moved.leaf) is moved:
                renames.append(Rename(note.leaf, moved.leaf))

        result = await self._rename_refs(renames)
        if isinstance(result, Err):
            return result

        await self._audit(
            "note.rename",
            erased=ErasureCost(files=1),
            created=CreationSummary(files=1, refs=result.data.replacements),
            metadata={"from": old_fname, "to": new_fname, "id": moved.id, "leaf_links": len(renames) > 1},
        )
        return result

    async def rename_refs(self, renames: Iterable[Rename]) -> Result[RenameReport]:
        """Rewrite links across every note file; only changed files are written."""
        if err := self._require_ready():
            return err
        renames = list(renames)
        result = await self._rename_refs(renames)
        if isinstance(result, Ok):
            await self._audit(
                "refs.rename",
                created=CreationSummary(refs=result.data.replacements),
                metadata={
                    "renames": [{"old": r.old, "new": r.new} for r in renames],
                    "files": [str(p) for p in result.data.files_touched],
                },
            )
        return result

    async def _rename_refs(self, renames: list[Rename]) -> Result[RenameReport]:
        report = RenameReport()
        targets = sort_paths((n for n in self._notes.values() if not n.stub), key=lambda n: n.fname, ext=self.ext)

        async def rewrite(note: Note) -> Path | None:
            async with self._note_lock(note.fname):
                path = self._path(note.fname)
                content = await self.store.read_text(path)
                if content is None:
                    return None

                def on_replace() -> None:
                    report.replacements += 1

                updated = replace_refs(content, renames, on_replace=on_replace)
                if updated is None:
                    return None
                await self.store.write_text(path, updated)
                note.body = replace_refs(note.body, renames) or note.body
                return path

        try:
            touched = await asyncio.gather(*(rewrite(n) for n in targets))
            await self._rebuild_cache()
        except NotetreeError as e:
            return self._fail(e)

        report.files_touched = [p for p in touched if p is not None]
        return Ok(report)

    # -- schemas ---------------------------------------------------------------

    async def write_schema(self, module: SchemaModule) -> Result[SchemaModule]:
        """Persist and insert a new schema module; its root id must be unused."""
        if err := self._require_ready():
            return err

        root_id = module.root_id
        if root_id is None:
            return self._report(ErrorCode.NO_SCHEMA_FOUND, f"Schema module '{module.fname}' has no root schema")

        async with self._schema_lock:
            if root_id in self._schemas:
                return self._report(
                    ErrorCode.DUPLICATE_MODULE_ROOT, f"Schema module with root '{root_id}' already exists", root=root_id
                )
            try:
                await self.store.write_schema_module(module)
                self._schema_findings[module.fname] = add_module(self._schemas, module)
            except NotetreeError as e:
                return self._fail(e)
            self._revalidate()

        await self._audit(
            "schema.write",
            created=CreationSummary(files=1),
            metadata={"module": module.fname, "root": root_id, "schemas": len(module.schemas)},
        )
        return Ok(module)

    async def update_schema(self, module: SchemaModule) -> Result[SchemaModule]:
        """Persist a module and replace the in-memory one with the same root id.

        When the replaced module lives in a different file, that file is
        deleted so the next load does not bring the old version back.
        """
        if err := self._require_ready():
            return err
        root_id = module.root_id
        if root_id is None:
            return self._report(ErrorCode.NO_SCHEMA_FOUND, f"Schema module '{module.fname}' has no root schema")

        async with self._schema_lock:
            previous = self._schemas.get(root_id)
            moved = previous is not None and previous.fname != module.fname
            try:
                await self.store.write_schema_module(module)
                if moved:
                    await self.store.delete_schema_module(previous)
                findings = replace_module(self._schemas, module)
            except NotetreeError as e:
                return self._fail(e)
            if moved:
                self._schema_findings.pop(previous.fname, None)
            self._schema_findings[module.fname] = findings
            self._revalidate()

        await self._audit(
            "schema.update",
            erased=ErasureCost(files=1 if moved else 0),
            created=CreationSummary(files=1),
            metadata={
                "module": module.fname,
                "root": root_id,
                "schemas": len(module.schemas),
                "replaced": previous.fname if previous is not None else None,
            },
        )
        return Ok(module)

"""Schema modules: loading, tree derivation and note validation."""

import fnmatch

from ..errors import DuplicateModuleRoot, NoSchemaFound
from ..models import ROOT_FNAME, Finding, Note, Schema, SchemaModule


def pattern_matches(pattern: str, segment: str) -> bool:
    """Case-insensitive glob match against a single hierarchical segment."""
    return fnmatch.fnmatchcase(segment.lower(), pattern.lower())


def _is_glob(pattern: str) -> bool:
    return any(ch in pattern for ch in "*?[")


def derive_tree(module: SchemaModule) -> list[Finding]:
    """Link each schema to its parent and report broken child references.

    Schemas are never stubbed: a child id that does not exist in the module is
    reported, not created.
    """
    findings = []

    for dup in module.duplicate_ids:
        findings.append(
            Finding(
                level="error",
                rule="duplicate-schema-id",
                fname=dup,
                module=module.fname,
                message=f"Schema id '{dup}' is defined more than once; first definition kept",
            )
        )

    for schema in module.schemas.values():
        for child_id in schema.children:
            child = module.schemas.get(child_id)
            if child is None:
                findings.append(
                    Finding(
                        level="error",
                        rule="missing-schema-child",
                        fname=schema.id,
                        module=module.fname,
                        message=f"Schema '{schema.id}' references missing child '{child_id}'",
                    )
                )
                continue
            child.parent = schema.id

    root = module.root
    if root is not None and root.id != ROOT_FNAME and not pattern_matches(root.pattern, module.fname):
        findings.append(
            Finding(
                level="warning",
                rule="module-root-mismatch",
                fname=root.id,
                module=module.fname,
                message=f"Root pattern '{root.pattern}' does not match module name '{module.fname}'",
            )
        )

    return findings


def load_schema_modules(modules: list[SchemaModule]) -> tuple[dict[str, SchemaModule], list[Finding]]:
    """Key modules by their root schema id and derive their trees.

    Raises:
        NoSchemaFound: no module designates the ``root`` schema
    """
    loaded: dict[str, SchemaModule] = {}
    findings: list[Finding] = []

    for module in modules:
        root = module.root
        if root is None:
            findings.append(
                Finding(
                    level="error",
                    rule="missing-module-root",
                    fname=module.fname,
                    module=module.fname,
                    message="Module has no root schema (id 'root' or parent 'root'); skipped",
                )
            )
            continue
        if root.id in loaded:
            findings.append(
                Finding(
                    level="error",
                    rule="duplicate-module-root",
                    fname=root.id,
                    module=module.fname,
                    message=f"Root id '{root.id}' already defined by module '{loaded[root.id].fname}'; skipped",
                )
            )
            continue
        findings.extend(derive_tree(module))
        loaded[root.id] = module

    if ROOT_FNAME not in loaded:
        raise NoSchemaFound("No root schema module found in vault")

    return loaded, findings


def add_module(modules: dict[str, SchemaModule], module: SchemaModule) -> list[Finding]:
    """Insert a new module; its root id must not be taken.

    Raises:
        DuplicateModuleRoot: a module with the same root id exists
        NoSchemaFound: the module has no root schema
    """
    root_id = module.root_id
    if root_id is None:
        raise NoSchemaFound(f"Schema module '{module.fname}' has no root schema", module=module.fname)
    if root_id in modules:
        raise DuplicateModuleRoot(f"Schema module with root '{root_id}' already exists", root=root_id)
    findings = derive_tree(module)
    modules[root_id] = module
    return findings


def replace_module(modules: dict[str, SchemaModule], module: SchemaModule) -> list[Finding]:
    """Replace (or insert) the module with the same root id and re-derive it."""
    root_id = module.root_id
    if root_id is None:
        raise NoSchemaFound(f"Schema module '{module.fname}' has no root schema", module=module.fname)
    findings = derive_tree(module)
    modules[root_id] = module
    return findings


def _match_child(module: SchemaModule, schema: Schema, segment: str) -> Schema | None:
    children = [module.schemas[c] for c in schema.children if c in module.schemas]
    # literal patterns win over globs
    for child in sorted(children, key=lambda s: _is_glob(s.pattern)):
        if pattern_matches(child.pattern, segment):
            return child
    return None


def match_schema(fname: str, modules: dict[str, SchemaModule]) -> tuple[SchemaModule, Schema] | None:
    """Find the schema node governing ``fname``.

    The first segment selects a module by its root pattern (falling back to
    the children of the root schema); each further segment descends through
    the children whose pattern matches it.
    """
    root_module = modules.get(ROOT_FNAME)
    if fname == ROOT_FNAME:
        if root_module is None or root_module.root is None:
            return None
        return root_module, root_module.root

    first, *rest = fname.split(".")
    start: tuple[SchemaModule, Schema] | None = None

    candidates = [m for key, m in modules.items() if key != ROOT_FNAME and m.root is not None]
    for module in sorted(candidates, key=lambda m: _is_glob(m.root.pattern)):
        if pattern_matches(module.root.pattern, first):
            start = (module, module.root)
            break

    if start is None and root_module is not None and root_module.root is not None:
        child = _match_child(root_module, root_module.root, first)
        if child is not None:
            start = (root_module, child)

    if start is None:
        return None

    module, schema = start
    for segment in rest:
        nxt = _match_child(module, schema, segment)
        if nxt is None:
            return None
        schema = nxt
    return module, schema


def validate_notes(notes: dict[str, Note], modules: dict[str, SchemaModule]) -> list[Finding]:
    """Report every real note that has no governing schema node."""
    findings = []
    for note in sorted(notes.values(), key=lambda n: n.fname):
        if note.stub:
            continue
        if match_schema(note.fname, modules) is None:
            findings.append(
                Finding(
                    level="warning",
                    rule="missing-schema",
                    fname=note.fname,
                    message="No schema governs this note",
                )
            )
    return findings

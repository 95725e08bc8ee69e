"""Vault engine pieces: paths, parsing, storage, hierarchy, schemas, refs."""

from .hierarchy import build_hierarchy, get_note_by_fname, iter_tree
from .parser import extract_refs, parse_ref
from .refs import RefIndex, WorkspaceCache, compute_workspace_cache
from .rewrite import Rename, replace_refs
from .schema import load_schema_modules, match_schema, validate_notes
from .store import FileStore, Store

__all__ = [
    "build_hierarchy",
    "get_note_by_fname",
    "iter_tree",
    "extract_refs",
    "parse_ref",
    "RefIndex",
    "WorkspaceCache",
    "compute_workspace_cache",
    "Rename",
    "replace_refs",
    "load_schema_modules",
    "match_schema",
    "validate_notes",
    "FileStore",
    "Store",
]

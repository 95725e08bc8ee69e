"""Error kinds and the result type returned by engine operations.

Expected failures (missing root, malformed files, storage problems) are
raised internally as ``NotetreeError`` subclasses and converted by the engine
facade into ``Err`` values, so callers never have to catch them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorCode(str, Enum):
    NO_ROOT_NOTE_FOUND = "no_root_note_found"
    NO_SCHEMA_FOUND = "no_schema_found"
    BAD_PARSE_FOR_NOTE = "bad_parse_for_note"
    BAD_PARSE_FOR_SCHEMA = "bad_parse_for_schema"
    DUPLICATE_MODULE_ROOT = "duplicate_module_root"
    STORAGE_FAILURE = "storage_failure"
    ENGINE_BUSY = "engine_busy"
    ENGINE_NOT_READY = "engine_not_ready"
    NOTE_NOT_FOUND = "note_not_found"
    NOTE_EXISTS = "note_exists"
    ROOT_NOTE_PROTECTED = "root_note_protected"


@dataclass(frozen=True)
class EngineError:
    """A tagged error value handed to callers and to the error sink."""

    code: ErrorCode
    message: str
    payload: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class NotetreeError(Exception):
    """Base exception; carries the ``EngineError`` it maps to."""

    code: ErrorCode = ErrorCode.STORAGE_FAILURE

    def __init__(self, message: str, **payload: Any):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def to_error(self) -> EngineError:
        return EngineError(code=self.code, message=self.message, payload=dict(self.payload))


class NoRootNoteFound(NotetreeError):
    code = ErrorCode.NO_ROOT_NOTE_FOUND


class NoSchemaFound(NotetreeError):
    code = ErrorCode.NO_SCHEMA_FOUND


class NoteParseError(NotetreeError):
    code = ErrorCode.BAD_PARSE_FOR_NOTE


class SchemaParseError(NotetreeError):
    code = ErrorCode.BAD_PARSE_FOR_SCHEMA


class DuplicateModuleRoot(NotetreeError):
    code = ErrorCode.DUPLICATE_MODULE_ROOT


class StorageError(NotetreeError):
    """Filesystem failure (permission denied, disk full, ...)."""

    code = ErrorCode.STORAGE_FAILURE


@dataclass(frozen=True)
class Ok(Generic[T]):
    data: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: EngineError

    @property
    def ok(self) -> bool:
        return False

    @property
    def code(self) -> ErrorCode:
        return self.error.code


Result = Union[Ok[T], Err]

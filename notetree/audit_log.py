"""
Append-only record of what each vault mutation touched.

Writes, deletions, moves, link rewrites and schema writes each add one JSON
line to ``<vault>/.notetree/audit.log`` with counts of what was created and
what was erased. Reading tolerates a torn last line from an interrupted
append.
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)

AUDIT_DIR = ".notetree"
AUDIT_FILE = "audit.log"


@dataclass
class ErasureCost:
    """Counts of what an operation removed or overwrote."""
    notes: int = 0
    files: int = 0
    refs: int = 0


@dataclass
class CreationSummary:
    """Counts of what an operation added or rewrote."""
    notes: int = 0
    stubs: int = 0
    files: int = 0
    refs: int = 0


def _counts(cls, raw: Any):
    # unknown keys from other versions are dropped
    if not isinstance(raw, dict):
        return cls()
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in raw.items() if k in names})


@dataclass
class AuditEntry:
    timestamp: str
    operation: str
    erased: ErasureCost = field(default_factory=ErasureCost)
    created: CreationSummary = field(default_factory=CreationSummary)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, line: str) -> "AuditEntry":
        """Decode one log line.

        Raises:
            ValueError: not JSON, or no timestamp/operation
        """
        data = json.loads(line)
        if not isinstance(data, dict) or "timestamp" not in data or "operation" not in data:
            raise ValueError("audit line is not an entry")
        return cls(
            timestamp=str(data["timestamp"]),
            operation=str(data["operation"]),
            erased=_counts(ErasureCost, data.get("erased")),
            created=_counts(CreationSummary, data.get("created")),
            metadata=data.get("metadata") or {},
        )


def get_audit_log_path(vault_path: Path) -> Path:
    return vault_path / AUDIT_DIR / AUDIT_FILE


def log_operation(
    vault_path: Path,
    operation: str,
    erased: ErasureCost | None = None,
    created: CreationSummary | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditEntry:
    """
    Append one operation to the vault's audit log.

    Args:
        vault_path: Vault root directory
        operation: Dotted operation name ("note.write", "refs.rename", ...)
        erased: What the operation removed
        created: What the operation added
        metadata: Fnames, paths and flags describing the call

    Returns:
        The entry as written
    """
    entry = AuditEntry(
        timestamp=datetime.now(timezone.utc).isoformat(),
        operation=operation,
        erased=erased or ErasureCost(),
        created=created or CreationSummary(),
        metadata=metadata or {},
    )

    log_path = get_audit_log_path(vault_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a", encoding="utf-8") as f:
        f.write(entry.to_json() + "\n")
    return entry


def _iter_entries(log_path: Path) -> Iterator[AuditEntry]:
    with log_path.open("r", encoding="utf-8", errors="replace") as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                yield AuditEntry.from_json(line)
            except (ValueError, TypeError) as e:
                logger.warning("skipping unreadable audit line %s:%d: %s", log_path, lineno, e)


def read_audit_log(vault_path: Path, operation: str | None = None) -> list[AuditEntry]:
    """Entries in append order, optionally only those named ``operation``.

    Lines that do not decode (a torn append, hand edits) are skipped.
    """
    log_path = get_audit_log_path(vault_path)
    if not log_path.exists():
        return []
    return [e for e in _iter_entries(log_path) if operation is None or e.operation == operation]

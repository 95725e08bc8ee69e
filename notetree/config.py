from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

CONFIG_FILENAME = "notetree.toml"


@dataclass(frozen=True)
class EngineConfig:
    note_extension: str = ".md"
    schema_suffix: str = ".schema.yml"
    audit_log: bool = True


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _suffix(value: Any, default: str, key: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or not value.startswith(".") or len(value) < 2:
        raise ValueError(f"{key} must be a string starting with '.', got {value!r}")
    return value


def parse_config(data: dict[str, Any]) -> EngineConfig:
    vault = _coerce_dict(data.get("vault"))
    engine = _coerce_dict(data.get("engine"))

    note_extension = _suffix(vault.get("note_extension"), EngineConfig.note_extension, "note_extension")
    schema_suffix = _suffix(vault.get("schema_suffix"), EngineConfig.schema_suffix, "schema_suffix")
    if schema_suffix.lower() == note_extension.lower():
        raise ValueError("schema_suffix must differ from note_extension")

    audit_log = engine.get("audit_log", EngineConfig.audit_log)
    if not isinstance(audit_log, bool):
        raise ValueError("audit_log must be a boolean")

    return EngineConfig(
        note_extension=note_extension,
        schema_suffix=schema_suffix,
        audit_log=audit_log,
    )


def load_config(vault_path: Path) -> EngineConfig:
    """Load ``notetree.toml`` from the vault root, or defaults when absent."""
    config_path = vault_path / CONFIG_FILENAME
    if not config_path.exists():
        return EngineConfig()

    try:
        data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Failed to parse {config_path}: {e}") from e

    return parse_config(data)

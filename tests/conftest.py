"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest
import yaml

from notetree.engine import Engine

ROOT_SCHEMA = [{"id": "root", "title": "root", "children": []}]


def write_note(vault: Path, fname: str, body: str = "", **meta) -> Path:
    """Write ``<fname>.md`` with a frontmatter block (id defaults to the fname)."""
    meta.setdefault("id", fname)
    lines = ["---"]
    lines.extend(f"{key}: {value}" for key, value in meta.items())
    lines.extend(["---", "", body, ""])
    path = vault / f"{fname}.md"
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def write_schema(vault: Path, fname: str, schemas: list[dict], version: int = 1) -> Path:
    path = vault / f"{fname}.schema.yml"
    path.write_text(yaml.safe_dump({"version": version, "schemas": schemas}, sort_keys=False), encoding="utf-8")
    return path


def module_schemas(root_name: str = "foo") -> list[dict]:
    """A two-node module: ``<root_name>`` with one child ``ch1``."""
    return [
        {"id": root_name, "parent": "root", "children": ["ch1"]},
        {"id": "ch1"},
    ]


@pytest.fixture
def vault_path(tmp_path: Path) -> Path:
    """A vault holding only root.md and root.schema.yml."""
    vault = tmp_path / "vault"
    vault.mkdir()
    write_note(vault, "root", "# Root\n")
    write_schema(vault, "root", ROOT_SCHEMA)
    return vault


@pytest.fixture
def errors() -> list:
    return []


@pytest.fixture
def engine(vault_path: Path, errors: list) -> Engine:
    return Engine(vault_path, on_error=errors.append)

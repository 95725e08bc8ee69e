"""Tests for the CLI command implementations."""

import json
from pathlib import Path

from notetree.commands.check import run_check, run_tree
from notetree.commands.refs import run_move, run_refs, run_rename_refs

from .conftest import write_note


def test_check_json_summary(vault_path: Path, capsys):
    write_note(vault_path, "loose.ch1")

    code = run_check(vault_path, output_json=True)

    assert code == 0
    output = json.loads(capsys.readouterr().out)
    assert output["summary"]["notes"] == 3
    assert output["summary"]["stubs"] == 1
    assert [f["rule"] for f in output["findings"]] == ["missing-schema"]


def test_check_fail_on_warning(vault_path: Path):
    write_note(vault_path, "loose")
    assert run_check(vault_path, fail_on="warning") == 1


def test_check_reports_load_failure(tmp_path: Path):
    assert run_check(tmp_path) == 1


def test_tree_prints_hierarchy(vault_path: Path, capsys):
    write_note(vault_path, "foo.ch1")

    assert run_tree(vault_path) == 0
    out = capsys.readouterr().out
    assert "root" in out
    assert "foo (stub)" in out
    assert "ch1" in out


def test_refs_json(vault_path: Path, capsys):
    write_note(vault_path, "a", "[[ghost]]")

    code = run_refs(vault_path, output_json=True)

    assert code == 1
    output = json.loads(capsys.readouterr().out)
    assert output["by_file"] == {"a.md": ["ghost"]}
    assert output["dangling_refs"] == ["ghost"]


def test_refs_clean_vault(vault_path: Path):
    assert run_refs(vault_path) == 0


def test_rename_refs_dry_run_leaves_files(vault_path: Path):
    path = write_note(vault_path, "a", "[[old]]")

    assert run_rename_refs(vault_path, "old", "new", dry_run=True) == 0
    assert "[[old]]" in path.read_text(encoding="utf-8")


def test_rename_refs_rewrites(vault_path: Path):
    path = write_note(vault_path, "a", "[[x|old]]")

    assert run_rename_refs(vault_path, "old", "new") == 0
    assert "[[x|new]]" in path.read_text(encoding="utf-8")


def test_move(vault_path: Path):
    write_note(vault_path, "foo")
    link = write_note(vault_path, "a", "[[foo]]")

    assert run_move(vault_path, "foo", "bar") == 0
    assert (vault_path / "bar.md").exists()
    assert not (vault_path / "foo.md").exists()
    assert "[[bar]]" in link.read_text(encoding="utf-8")


def test_move_missing_note_fails(vault_path: Path):
    assert run_move(vault_path, "nope", "bar") == 1

"""Check and tree commands: load the vault and report its structure."""

import asyncio
import json
from pathlib import Path

from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from ..engine import Engine, InitResult
from ..errors import Err
from ..models import Finding
from ..vault.hierarchy import get_root, iter_tree


async def open_engine(vault_path: Path, console: Console) -> tuple[Engine, InitResult] | None:
    """Initialize an engine for ``vault_path``, printing the error on failure."""
    try:
        engine = Engine.from_vault(vault_path)
    except ValueError as e:
        console.print(f"Invalid config: {e}", style="bold red")
        return None

    console.print(f"Loading vault from {vault_path}...", style="dim")
    result = await engine.init()
    if isinstance(result, Err):
        console.print(f"✗ {result.error}", style="bold red")
        return None
    return engine, result.data


def _finding_to_dict(finding: Finding) -> dict:
    return {
        "level": finding.level,
        "rule": finding.rule,
        "fname": finding.fname,
        "module": finding.module,
        "message": finding.message,
    }


def run_check(vault_path: Path, output_json: bool = False, fail_on: str = "error") -> int:
    """Load the vault and report structural and schema findings.

    Returns:
        Exit code (0 = success, 1 = load failure or findings at ``fail_on`` level)
    """
    console = Console(stderr=True)

    loaded = asyncio.run(open_engine(vault_path, console))
    if loaded is None:
        return 1
    engine, data = loaded

    level_order = {"error": 0, "warning": 1, "info": 2}
    findings = sorted(data.findings, key=lambda f: (level_order.get(f.level, 99), f.fname))

    counts = {"error": 0, "warning": 0, "info": 0}
    for f in findings:
        counts[f.level] = counts.get(f.level, 0) + 1

    stubs = sum(1 for n in data.notes.values() if n.stub)

    if output_json:
        output = {
            "findings": [_finding_to_dict(f) for f in findings],
            "summary": {
                "notes": len(data.notes),
                "stubs": stubs,
                "schema_modules": len(data.schemas),
                "dangling_refs": len(engine.workspace_cache.dangling_refs),
                **counts,
            },
        }
        print(json.dumps(output, indent=2, default=str))
    else:
        for f in findings:
            style = {"error": "bold red", "warning": "yellow"}.get(f.level, "dim")
            console.print(str(f), style=style)

        console.print()
        table = Table(title="Vault Summary", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Count", justify="right")
        table.add_row("Notes", str(len(data.notes) - stubs))
        table.add_row("Stubs", str(stubs))
        table.add_row("Schema modules", str(len(data.schemas)))
        table.add_row("Dangling refs", str(len(engine.workspace_cache.dangling_refs)))
        table.add_row("Errors", str(counts["error"]))
        table.add_row("Warnings", str(counts["warning"]))
        console.print(table)

    if fail_on == "warning":
        return 1 if counts["error"] or counts["warning"] else 0
    return 1 if counts["error"] else 0


def run_tree(vault_path: Path) -> int:
    """Print the note hierarchy; stubs are shown dimmed."""
    console = Console(stderr=True)

    loaded = asyncio.run(open_engine(vault_path, console))
    if loaded is None:
        return 1
    engine, _ = loaded

    root = get_root(engine.notes)
    tree = Tree(root.fname)
    branches = {0: tree}
    for level, note in iter_tree(engine.notes, root):
        if level == 0:
            continue
        label = f"[dim]{note.leaf} (stub)[/dim]" if note.stub else note.leaf
        branches[level] = branches[level - 1].add(label)

    Console().print(tree)
    return 0

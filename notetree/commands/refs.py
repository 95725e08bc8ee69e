"""Reference commands: dangling-link report, link rewriting and note moves."""

import asyncio
import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..errors import Err
from ..vault.rewrite import Rename, replace_refs
from .check import open_engine


def run_refs(vault_path: Path, output_json: bool = False) -> int:
    """Report dangling references per file and vault-wide.

    Returns:
        Exit code (0 = no dangling refs, 1 = dangling refs or load failure)
    """
    console = Console(stderr=True)

    loaded = asyncio.run(open_engine(vault_path, console))
    if loaded is None:
        return 1
    engine, _ = loaded
    cache = engine.workspace_cache

    if output_json:
        output = {
            "by_file": {
                str(path.relative_to(vault_path)): refs for path, refs in cache.dangling_refs_by_path.items()
            },
            "dangling_refs": cache.dangling_refs,
            "files_scanned": len(cache.markdown_paths),
        }
        print(json.dumps(output, indent=2))
    elif not cache.dangling_refs:
        console.print(f"✓ No dangling references in {len(cache.markdown_paths)} files", style="green")
    else:
        table = Table(title="Dangling references")
        table.add_column("File", style="cyan")
        table.add_column("Refs")
        for path, refs in cache.dangling_refs_by_path.items():
            table.add_row(path.name, ", ".join(refs))
        console.print(table)
        console.print(f"{len(cache.dangling_refs)} unique dangling refs", style="yellow")

    return 1 if cache.dangling_refs else 0


def run_rename_refs(vault_path: Path, old: str, new: str, dry_run: bool = False) -> int:
    """Rewrite ``[[old]]`` links to ``[[new]]`` across the vault."""
    console = Console(stderr=True)
    renames = [Rename(old=old, new=new)]

    async def main() -> int:
        loaded = await open_engine(vault_path, console)
        if loaded is None:
            return 1
        engine, _ = loaded

        if dry_run:
            hits = 0
            for path in engine.workspace_cache.markdown_paths:
                content = await engine.store.read_text(path)
                if content is not None and replace_refs(content, renames) is not None:
                    console.print(f"would update {path.name}", style="dim")
                    hits += 1
            console.print(f"[DRY RUN] {hits} files would change", style="yellow")
            return 0

        result = await engine.rename_refs(renames)
        if isinstance(result, Err):
            console.print(f"✗ {result.error}", style="bold red")
            return 1
        report = result.data
        for path in report.files_touched:
            console.print(f"updated {path.name}", style="dim")
        console.print(
            f"✓ {report.replacements} links rewritten in {len(report.files_touched)} files",
            style="green",
        )
        return 0

    return asyncio.run(main())


def run_move(vault_path: Path, old_fname: str, new_fname: str) -> int:
    """Rename a note (keeping its id) and rewrite links pointing at it."""
    console = Console(stderr=True)

    async def main() -> int:
        loaded = await open_engine(vault_path, console)
        if loaded is None:
            return 1
        engine, _ = loaded

        result = await engine.rename_note(old_fname, new_fname)
        if isinstance(result, Err):
            console.print(f"✗ {result.error}", style="bold red")
            return 1
        console.print(
            f"✓ moved {old_fname} -> {new_fname}; {result.data.replacements} links rewritten",
            style="green",
        )
        return 0

    return asyncio.run(main())

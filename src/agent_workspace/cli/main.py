"""
CLI for agent-workspace.

Runs workspace filesystem tools from the command line, going through the
same policies, path confinement and timeouts an agent would.
"""

import asyncio
import functools
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Any, Optional

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

from agent_workspace.filesystem import (
    ToolExecuteOptions,
    WorkspaceError,
    WorkspaceFilesystemToolkit,
    WorkspaceRuntime,
)
from agent_workspace.settings import WorkspaceSettings

# Load environment variables
load_dotenv()

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Setup rich logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def build_toolkit(
    root: Optional[Path], config_file: Optional[Path], read_only: Optional[bool]
) -> WorkspaceFilesystemToolkit:
    """Build a toolkit from CLI flags layered over environment settings."""
    overrides: dict[str, Any] = {}
    if root is not None:
        overrides["root_dir"] = root
    if config_file is not None:
        overrides["config_file"] = config_file
    if read_only:
        overrides["read_only"] = True

    settings = WorkspaceSettings(**overrides)
    runtime = WorkspaceRuntime(settings.to_config())
    return WorkspaceFilesystemToolkit(runtime)


def workspace_options(func):
    """Options shared by every command."""

    @click.option("--root", "-r", type=click.Path(path_type=Path), default=None, help="Workspace root directory")
    @click.option("--config", "-c", "config_file", type=click.Path(path_type=Path, exists=True), default=None, help="Workspace config file (YAML/JSON)")
    @click.option("--read-only", is_flag=True, default=False, help="Hide mutating tools")
    @click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
    @functools.wraps(func)
    def wrapper(root, config_file, read_only, verbose, **kwargs):
        setup_logging(verbose)
        try:
            toolkit = build_toolkit(root, config_file, read_only)
            return func(toolkit, **kwargs)
        except (WorkspaceError, ValidationError, ValueError, OSError) as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            sys.exit(1)

    return wrapper


def run_tool(toolkit: WorkspaceFilesystemToolkit, tool: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Run one tool call under a fresh operation key."""
    options = ToolExecuteOptions(operation_id=f"cli-{uuid.uuid4().hex[:8]}")
    return asyncio.run(toolkit.execute_tool(tool, arguments, options))


@click.group()
@click.version_option(version="0.1.0")
def cli():
    """Agent Workspace CLI - sandboxed filesystem tools for agents."""
    pass


@cli.command()
@workspace_options
def tools(toolkit: WorkspaceFilesystemToolkit):
    """Show the tools exposed for this workspace."""
    table = Table(title=f"{toolkit.name} ({toolkit.runtime.filesystem_root_dir})")
    table.add_column("Tool", style="cyan")
    table.add_column("Approval")
    table.add_column("Description")
    for tool in toolkit.tools:
        approval = "[yellow]required[/yellow]" if tool.needs_approval else "-"
        table.add_row(tool.name, approval, tool.description)
    console.print(table)


@cli.command()
@click.argument("path", default="/")
@workspace_options
def ls(toolkit: WorkspaceFilesystemToolkit, path: str):
    """List a workspace directory."""
    result = run_tool(toolkit, "ls", {"path": path})
    for entry in result["entries"]:
        if entry["is_dir"]:
            console.print(f"{'-':>10}  [bold blue]{entry['path']}/[/bold blue]")
        else:
            console.print(f"{entry['size']:>10}  {entry['path']}")


@cli.command()
@click.argument("path")
@click.option("--offset", type=int, default=None, help="0-based line offset")
@click.option("--limit", type=int, default=None, help="Max lines to read")
@workspace_options
def read(toolkit: WorkspaceFilesystemToolkit, path: str, offset: Optional[int], limit: Optional[int]):
    """Print a workspace file."""
    result = run_tool(toolkit, "read_file", {"path": path, "offset": offset, "limit": limit})
    lexer = Syntax.guess_lexer(result["path"], result["content"])
    console.print(Syntax(result["content"], lexer, line_numbers=True, start_line=(offset or 0) + 1))


@cli.command()
@click.argument("path", default="/")
@click.option("--max-depth", type=int, default=4, help="Maximum depth to descend")
@workspace_options
def tree(toolkit: WorkspaceFilesystemToolkit, path: str, max_depth: int):
    """List a workspace subtree."""
    result = run_tool(toolkit, "list_tree", {"path": path, "max_depth": max_depth})
    for entry in result["entries"]:
        console.print(entry["path"], style="bold blue" if entry["is_dir"] else None)


@cli.command()
@click.argument("path")
@workspace_options
def stat(toolkit: WorkspaceFilesystemToolkit, path: str):
    """Show metadata for a workspace path."""
    result = run_tool(toolkit, "stat", {"path": path})
    console.print_json(json.dumps(result))


@cli.command()
@click.argument("pattern")
@click.option("--path", "-p", default=None, help="Workspace directory to search under")
@workspace_options
def glob(toolkit: WorkspaceFilesystemToolkit, pattern: str, path: Optional[str]):
    """Find workspace entries matching a glob pattern."""
    result = run_tool(toolkit, "glob", {"pattern": pattern, "path": path})
    for match in result["matches"]:
        console.print(match["path"])
    console.print(f"[dim]{len(result['matches'])} match(es)[/dim]")


@cli.command()
@click.argument("pattern")
@click.option("--path", "-p", default=None, help="Workspace directory to search")
@click.option("--glob", "-g", "glob_filter", default=None, help="Glob filter, e.g. **/*.py")
@workspace_options
def grep(toolkit: WorkspaceFilesystemToolkit, pattern: str, path: Optional[str], glob_filter: Optional[str]):
    """Search workspace files for a regex pattern."""
    result = run_tool(toolkit, "grep", {"pattern": pattern, "path": path, "glob": glob_filter})
    for match in result["matches"]:
        console.print(f"[cyan]{match['path']}[/cyan]:[green]{match['line']}[/green]: {match['text']}")
    console.print(f"[dim]{len(result['matches'])} match(es)[/dim]")


@cli.command()
@click.argument("path")
@click.argument("source", type=click.File("r"), default="-")
@click.option("--overwrite", is_flag=True, default=False, help="Overwrite an existing file")
@workspace_options
def write(toolkit: WorkspaceFilesystemToolkit, path: str, source, overwrite: bool):
    """Write SOURCE (default: stdin) to a workspace file."""
    content = source.read()

    async def _write() -> dict[str, Any]:
        options = ToolExecuteOptions(operation_id=f"cli-{uuid.uuid4().hex[:8]}")
        policy = toolkit.runtime.get_policy("filesystem", "write_file")
        if overwrite and policy.require_read_before_write:
            host_path = await asyncio.to_thread(toolkit.runtime.resolve_host_path, path)
            if await asyncio.to_thread(host_path.exists):
                await toolkit.execute_tool("read_file", {"path": path}, options)
        return await toolkit.execute_tool(
            "write_file", {"path": path, "content": content, "overwrite": overwrite}, options
        )

    result = asyncio.run(_write())
    verb = "Overwrote" if result["overwritten"] else "Created"
    console.print(f"[green]{verb}[/green] {result['path']}")


@cli.command()
@click.argument("path")
@click.argument("old_string")
@click.argument("new_string")
@click.option("--all", "replace_all", is_flag=True, default=False, help="Replace every occurrence")
@workspace_options
def edit(toolkit: WorkspaceFilesystemToolkit, path: str, old_string: str, new_string: str, replace_all: bool):
    """Replace OLD_STRING with NEW_STRING in a workspace file."""

    async def _edit() -> dict[str, Any]:
        # Read first under the same key so read-before-write policies pass
        options = ToolExecuteOptions(operation_id=f"cli-{uuid.uuid4().hex[:8]}")
        await toolkit.execute_tool("read_file", {"path": path}, options)
        return await toolkit.execute_tool(
            "edit_file",
            {"path": path, "old_string": old_string, "new_string": new_string, "replace_all": replace_all},
            options,
        )

    result = asyncio.run(_edit())
    console.print(f"[green]Edited[/green] {result['path']} ({result['occurrences']} replacement(s))")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()

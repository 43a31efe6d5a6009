"""Shared helpers for the stencil front end.

Provides blocking command execution plus the Rich-based console output used
by the CLI: coloured status lines, key/value summary tables and a tree view
of staged output.
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

console = Console()

# ---------------------------------------------------------------------------
# Command execution
# ---------------------------------------------------------------------------


def run_command(
    cmd: list[str],
    cwd: str | Path | None = None,
    timeout: int | None = 120,
    capture: bool = True,
    env: dict[str, str] | None = None,
) -> tuple[int, str, str]:
    """Run a command and wait for it to finish.

    Args:
        cmd: Program and arguments.
        cwd: Working directory for the child process.
        timeout: Maximum wall-clock seconds before the process is killed, or
            ``None`` to wait indefinitely.
        capture: Whether to capture stdout/stderr (if ``False`` they inherit
            the parent's streams, which interactive hooks need).
        env: Optional extra environment variables merged on top of ``os.environ``.

    Returns:
        A ``(returncode, stdout, stderr)`` tuple.  If *capture* is ``False``
        the stdout/stderr strings will be empty.

    Raises:
        FileNotFoundError: The program does not exist.
        PermissionError: The program is not executable.
    """
    merged_env: dict[str, str] | None = None
    if env:
        merged_env = {**os.environ, **env}

    try:
        completed = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            env=merged_env,
            stdin=subprocess.DEVNULL if capture else None,
            capture_output=capture,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return (-1, "", f"Command timed out after {timeout}s: {' '.join(cmd)}")

    stdout_str = (completed.stdout or b"").decode("utf-8", errors="replace").strip()
    stderr_str = (completed.stderr or b"").decode("utf-8", errors="replace").strip()
    return (completed.returncode, stdout_str, stderr_str)


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table.

    Args:
        data: Mapping of label -> value.
        title: Table title.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def build_tree(root: Path, label: str | None = None) -> Tree:
    """Build a Rich tree of everything below *root*, directories first."""
    tree = Tree(f"[bold]{escape(label or root.name or str(root))}[/bold]", guide_style="dim")
    _add_children(tree, root)
    return tree


def _add_children(node: Tree, directory: Path) -> None:
    children = sorted(directory.iterdir(), key=lambda p: (not p.is_dir(), p.name))
    for child in children:
        if child.is_dir():
            _add_children(node.add(f"[bold blue]{escape(child.name)}/[/bold blue]"), child)
        else:
            node.add(escape(child.name))


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]")

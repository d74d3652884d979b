"""
CLI output helpers using rich, with gum for styling when it is installed.

Environment handling:
- Respects NO_COLOR and FORCE_COLOR
- Plain prompts are skipped in CI and non-TTY sessions
"""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from typing import Any

import questionary
from questionary import Style as QStyle
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

PODSCOPE_THEME = Theme(
    {
        "info": "#7AA2F7",
        "success": "#9ECE6A",
        "warning": "#E0AF68",
        "error": "#F7768E bold",
        "highlight": "#BB9AF7",
        "muted": "#A9B1D6",
    }
)

console = Console(
    theme=PODSCOPE_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)

PROMPT_STYLE = QStyle(
    [
        ("qmark", "fg:#7AA2F7 bold"),
        ("question", "bold"),
        ("answer", "fg:#9ECE6A"),
        ("pointer", "fg:#7AA2F7 bold"),
    ]
)


def is_interactive() -> bool:
    """Check if we're in an interactive terminal environment."""
    ci_vars = ["CI", "GITHUB_ACTIONS", "JENKINS_URL", "GITLAB_CI", "CIRCLECI", "TRAVIS"]
    if any(os.environ.get(var) for var in ci_vars):
        return False
    return sys.stdout.isatty()


def has_gum() -> bool:
    """Check if gum is available in PATH."""
    return shutil.which("gum") is not None


def _run_gum(args: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
    return subprocess.run(["gum", *args], **kwargs)


def _styled(message: str, symbol: str, style: str, gum_color: str) -> None:
    if has_gum() and is_interactive():
        _run_gum(["style", "--foreground", gum_color, f"{symbol} {message}"])
    else:
        console.print(f"[{style}]{symbol} {message}[/{style}]", highlight=False)


def success(message: str) -> None:
    _styled(message, "✓", "success", "10")


def error(message: str) -> None:
    _styled(message, "✗", "error", "9")


def warning(message: str) -> None:
    _styled(message, "⚠", "warning", "11")


def header(title: str) -> None:
    """Print a section header."""
    console.print()
    console.print(Panel(f"[bold]{title}[/bold]", border_style="highlight"))


def print_table(
    title: str,
    columns: list[str],
    rows: list[list[str]],
    show_header: bool = True,
) -> None:
    table = Table(title=title, show_header=show_header)
    for col in columns:
        table.add_column(col)
    for row in rows:
        table.add_row(*row)
    console.print(table)


def print_key_value(items: dict[str, str], title: str | None = None) -> None:
    if title:
        console.print(f"\n[bold]{title}[/bold]")
    for key, value in items.items():
        console.print(f"  [info]{key}:[/info] {value}", highlight=False)


def confirm(message: str, default: bool = False) -> bool:
    """Ask for confirmation; non-interactive sessions get the default."""
    if not is_interactive():
        return default
    if has_gum():
        default_flag = "--default" if default else "--default=false"
        return _run_gum(["confirm", default_flag, message]).returncode == 0
    return questionary.confirm(message, default=default, style=PROMPT_STYLE).ask() or False

"""
CLI commands for configuration history.

Usage:
    podscope history list
    podscope history snapshot --type manual --label "before cleanup"
    podscope history undo
    podscope history redo
    podscope history restore <snapshot-id>
    podscope history delete <snapshot-id>
    podscope history clear --yes
"""

from __future__ import annotations

import argparse
from typing import Awaitable, Callable

from podscope.cli.helpers import print_json, resolve_settings, run_async, service_session
from podscope.cli.ux import confirm, console, print_table, success, warning
from podscope.config.schema import ChangeType
from podscope.core.errors import ExitCode
from podscope.history import ConfigHistory, HistoryResult
from podscope.service import DashboardService


def list_history_command(output_format: str = "table", config_path: str | None = None) -> int:
    async def _run() -> ConfigHistory:
        async with service_session(resolve_settings(config_path)) as service:
            return await service.history.load()

    history = run_async(_run())

    if output_format == "json":
        print_json(history.to_dict())
        return ExitCode.SUCCESS

    if not history.snapshots:
        warning("No configuration history")
        return ExitCode.SUCCESS

    rows = [
        [
            "→" if index == history.current_index else "",
            str(index),
            snapshot.id,
            snapshot.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            str(snapshot.change_type),
            snapshot.label or "",
        ]
        for index, snapshot in enumerate(history.snapshots)
    ]
    print_table("Configuration History", ["", "#", "ID", "Created", "Change", "Label"], rows)
    return ExitCode.SUCCESS


def snapshot_command(
    change_type: str = "manual",
    label: str | None = None,
    config_path: str | None = None,
) -> int:
    async def _run():
        async with service_session(resolve_settings(config_path)) as service:
            return await service.snapshot(change_type, label)

    snapshot = run_async(_run())
    success(f"Created snapshot {snapshot.id}")
    return ExitCode.SUCCESS


def _navigate(
    action: Callable[[DashboardService], Awaitable[HistoryResult]],
    config_path: str | None,
    verb: str,
) -> int:
    async def _run() -> HistoryResult:
        async with service_session(resolve_settings(config_path)) as service:
            return await action(service)

    result = run_async(_run())
    if not result.success:
        warning(result.reason or f"Could not {verb}")
        return ExitCode.WARNING

    if result.snapshot is not None:
        label = f" ({result.snapshot.label})" if result.snapshot.label else ""
        success(f"{verb.capitalize()}: now at {result.snapshot.id}{label}")
    else:
        success(verb.capitalize())
    return ExitCode.SUCCESS


def undo_command(config_path: str | None = None) -> int:
    return _navigate(lambda service: service.undo(), config_path, "undo")


def redo_command(config_path: str | None = None) -> int:
    return _navigate(lambda service: service.redo(), config_path, "redo")


def restore_command(snapshot_id: str, config_path: str | None = None) -> int:
    return _navigate(lambda service: service.restore(snapshot_id), config_path, "restore")


def delete_command(snapshot_id: str, config_path: str | None = None) -> int:
    return _navigate(
        lambda service: service.history.delete_snapshot(snapshot_id), config_path, "delete"
    )


def clear_command(yes: bool = False, config_path: str | None = None) -> int:
    if not yes and not confirm("Delete the entire configuration history?"):
        warning("Aborted")
        return ExitCode.WARNING

    async def _run() -> None:
        async with service_session(resolve_settings(config_path)) as service:
            await service.history.clear_history()

    run_async(_run())
    success("Configuration history cleared")
    return ExitCode.SUCCESS


def register_history_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register history subcommand parser."""
    history_parser = subparsers.add_parser("history", help="Undo/redo configuration changes")
    history_sub = history_parser.add_subparsers(dest="history_command")

    list_parser = history_sub.add_parser("list", help="List snapshots")
    list_parser.add_argument(
        "--format", "-f", dest="output_format", choices=["table", "json"], default="table"
    )

    snapshot_parser = history_sub.add_parser("snapshot", help="Snapshot the current configuration")
    snapshot_parser.add_argument(
        "--type", "-t", dest="change_type", choices=[str(c) for c in ChangeType], default="manual"
    )
    snapshot_parser.add_argument("--label", "-l", help="Snapshot label")

    history_sub.add_parser("undo", help="Step back one snapshot")
    history_sub.add_parser("redo", help="Step forward one snapshot")

    restore_parser = history_sub.add_parser("restore", help="Restore a snapshot")
    restore_parser.add_argument("snapshot_id")

    delete_parser = history_sub.add_parser("delete", help="Delete a snapshot")
    delete_parser.add_argument("snapshot_id")

    clear_parser = history_sub.add_parser("clear", help="Delete all snapshots")
    clear_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")


def handle_history_command(args: argparse.Namespace) -> int:
    """Handle history command from CLI args."""
    config_path = getattr(args, "config", None)
    command = getattr(args, "history_command", None)

    if command == "list":
        return list_history_command(args.output_format, config_path)
    if command == "snapshot":
        return snapshot_command(args.change_type, args.label, config_path)
    if command == "undo":
        return undo_command(config_path)
    if command == "redo":
        return redo_command(config_path)
    if command == "restore":
        return restore_command(args.snapshot_id, config_path)
    if command == "delete":
        return delete_command(args.snapshot_id, config_path)
    if command == "clear":
        return clear_command(args.yes, config_path)

    console.print("Usage: podscope history {list,snapshot,undo,redo,restore,delete,clear}")
    return ExitCode.WARNING

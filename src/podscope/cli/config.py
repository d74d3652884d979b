"""
CLI commands for the dashboard configuration file.

Usage:
    podscope config export [--output dashboard.json]
    podscope config import dashboard.json [--label "from staging"]
    podscope config template multi-page.json [--name "Multi-Page"]
    podscope config reset --yes
"""

from __future__ import annotations

import argparse
from pathlib import Path

from podscope.cli.helpers import resolve_settings, run_async, service_session
from podscope.cli.ux import confirm, console, error, success, warning
from podscope.config.loader import read_data_file
from podscope.core.errors import ConfigurationError, ExitCode
from podscope.service import build_storage
from podscope.storage import ImportResult


def export_command(output: str | None = None, config_path: str | None = None) -> int:
    text = build_storage(resolve_settings(config_path)).export_config()
    if output:
        Path(output).write_text(text + "\n")
        success(f"Exported configuration to {output}")
    else:
        print(text)
    return ExitCode.SUCCESS


def import_command(
    source: str,
    label: str | None = None,
    config_path: str | None = None,
) -> int:
    path = Path(source)
    if not path.exists():
        raise ConfigurationError(f"File not found: {source}", {"path": source})
    text = path.read_text()

    async def _run() -> ImportResult:
        async with service_session(resolve_settings(config_path)) as service:
            return await service.import_config(text, label or f"Imported {path.name}")

    result = run_async(_run())
    if not result.success:
        error(f"Import failed: {result.error}")
        return ExitCode.CONFIG_ERROR

    success(f"Imported configuration from {source}")
    return ExitCode.SUCCESS


def template_command(
    source: str,
    name: str | None = None,
    config_path: str | None = None,
) -> int:
    path = Path(source)
    if not path.exists():
        raise ConfigurationError(f"File not found: {source}", {"path": source})
    data = read_data_file(path)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Template must be an object: {source}", {"path": source})
    template = data.get("config", data)

    async def _run() -> None:
        async with service_session(resolve_settings(config_path)) as service:
            await service.apply_template(template, name or data.get("name") or path.stem)

    run_async(_run())
    success(f"Applied template from {source}")
    return ExitCode.SUCCESS


def reset_command(
    yes: bool = False,
    config_path: str | None = None,
) -> int:
    if not yes and not confirm("Reset the dashboard and user queries to defaults?"):
        warning("Aborted")
        return ExitCode.WARNING

    async def _run() -> None:
        async with service_session(resolve_settings(config_path)) as service:
            await service.reset_config()

    run_async(_run())
    success("Configuration reset to defaults")
    return ExitCode.SUCCESS


def register_config_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register config subcommand parser."""
    config_parser = subparsers.add_parser("config", help="Export, import or reset configuration")
    config_sub = config_parser.add_subparsers(dest="config_command")

    export_parser = config_sub.add_parser("export", help="Export configuration as JSON")
    export_parser.add_argument("--output", "-o", help="Write to file instead of stdout")

    import_parser = config_sub.add_parser("import", help="Import a JSON or YAML configuration")
    import_parser.add_argument("source", help="Path to configuration file")
    import_parser.add_argument("--label", "-l", help="History label for the import")

    template_parser = config_sub.add_parser("template", help="Apply a dashboard template")
    template_parser.add_argument("source", help="Path to a template or configuration file")
    template_parser.add_argument("--name", "-n", help="Template name recorded in history")

    reset_parser = config_sub.add_parser("reset", help="Reset to the default dashboard")
    reset_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")


def handle_config_command(args: argparse.Namespace) -> int:
    """Handle config command from CLI args."""
    config_path = getattr(args, "config", None)
    command = getattr(args, "config_command", None)

    if command == "export":
        return export_command(args.output, config_path)
    if command == "import":
        return import_command(args.source, args.label, config_path)
    if command == "template":
        return template_command(args.source, args.name, config_path)
    if command == "reset":
        return reset_command(args.yes, config_path)

    console.print("Usage: podscope config {export,import,template,reset}")
    return ExitCode.WARNING

"""
CLI commands for the query library.

Usage:
    podscope queries list [--namespace podMetrics] [--format json]
    podscope queries show podFilters.failed_pods_v1-0-0
    podscope queries resolve podFilters.failed_pods_v1-0-0 --var namespace=prod
    podscope queries add myNamespace slow_requests_v1-0-0 'sum(rate(...))'
    podscope queries remove myNamespace slow_requests_v1-0-0
"""

from __future__ import annotations

import argparse

from podscope.cli.helpers import (
    parse_variables,
    print_json,
    resolve_settings,
    run_async,
    service_session,
)
from podscope.cli.ux import console, header, print_key_value, print_table, success, warning
from podscope.core.errors import ExitCode, NotFoundError
from podscope.queries.library import QueryLibraryManager
from podscope.queries.resolver import extract_variables
from podscope.service import build_storage


def _manager(config_path: str | None) -> QueryLibraryManager:
    return QueryLibraryManager(build_storage(resolve_settings(config_path)))


def list_queries_command(
    namespace: str | None = None,
    output_format: str = "table",
    config_path: str | None = None,
) -> int:
    manager = _manager(config_path)
    library = manager.library
    user = manager.user_queries

    if namespace is not None:
        if namespace not in library:
            raise NotFoundError(f"Namespace not found: {namespace}", {"namespace": namespace})
        library = {namespace: library[namespace]}

    if output_format == "json":
        print_json(library)
        return ExitCode.SUCCESS

    rows = [
        [
            f"{ns}.{name}",
            ", ".join(extract_variables(template)) or "-",
            "user" if name in user.get(ns, {}) else "base",
        ]
        for ns, queries in library.items()
        for name, template in queries.items()
    ]
    print_table("Query Library", ["Reference", "Variables", "Source"], rows)
    return ExitCode.SUCCESS


def show_query_command(reference: str, config_path: str | None = None) -> int:
    resolved = _manager(config_path).resolve(reference)
    header(reference)
    print_key_value(
        {
            "Namespace": resolved.namespace,
            "Name": resolved.name,
            "Variables": ", ".join(resolved.variables) or "-",
        }
    )
    console.print()
    console.print(resolved.template, highlight=False, markup=False)
    return ExitCode.SUCCESS


def resolve_query_command(
    reference: str,
    variables: list[str] | None = None,
    output_format: str = "text",
    config_path: str | None = None,
) -> int:
    resolved = _manager(config_path).resolve(reference, parse_variables(variables))
    if output_format == "json":
        print_json(
            {
                "reference": resolved.reference,
                "template": resolved.template,
                "variables": list(resolved.variables),
                "query": resolved.query,
            }
        )
    else:
        print(resolved.text)
    return ExitCode.SUCCESS


def add_query_command(
    namespace: str,
    name: str,
    template: str,
    config_path: str | None = None,
) -> int:
    async def _run() -> None:
        async with service_session(resolve_settings(config_path)) as service:
            await service.add_query(namespace, name, template)

    run_async(_run())
    success(f"Saved {namespace}.{name}")
    return ExitCode.SUCCESS


def remove_query_command(namespace: str, name: str, config_path: str | None = None) -> int:
    async def _run() -> tuple[bool, bool]:
        async with service_session(resolve_settings(config_path)) as service:
            removed = await service.remove_query(namespace, name)
            return removed, service.queries.exists(f"{namespace}.{name}")

    removed, still_resolves = run_async(_run())
    if not removed:
        warning(f"No user query {namespace}.{name} to remove")
        return ExitCode.WARNING
    if still_resolves:
        success(f"Removed override; {namespace}.{name} now resolves to the base query")
    else:
        success(f"Removed {namespace}.{name}")
    return ExitCode.SUCCESS


def register_queries_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register queries subcommand parser."""
    queries_parser = subparsers.add_parser("queries", help="Browse and edit the query library")
    queries_sub = queries_parser.add_subparsers(dest="queries_command")

    list_parser = queries_sub.add_parser("list", help="List queries")
    list_parser.add_argument("--namespace", "-n", help="Only list this namespace")
    list_parser.add_argument(
        "--format", "-f", dest="output_format", choices=["table", "json"], default="table"
    )

    show_parser = queries_sub.add_parser("show", help="Show a query template")
    show_parser.add_argument("reference", help="namespace.queryName")

    resolve_parser = queries_sub.add_parser("resolve", help="Resolve a query reference")
    resolve_parser.add_argument("reference", help="namespace.queryName")
    resolve_parser.add_argument(
        "--var", "-v", dest="variables", action="append", metavar="KEY=VALUE",
        help="Variable value (repeatable)",
    )
    resolve_parser.add_argument(
        "--format", "-f", dest="output_format", choices=["text", "json"], default="text"
    )

    add_parser = queries_sub.add_parser("add", help="Add or override a query")
    add_parser.add_argument("namespace")
    add_parser.add_argument("name", help="Query name ending in _v<major>-<minor>-<patch>")
    add_parser.add_argument("template", help="PromQL template with {{variable}} placeholders")

    remove_parser = queries_sub.add_parser("remove", help="Remove a user query")
    remove_parser.add_argument("namespace")
    remove_parser.add_argument("name")


def handle_queries_command(args: argparse.Namespace) -> int:
    """Handle queries command from CLI args."""
    config_path = getattr(args, "config", None)
    command = getattr(args, "queries_command", None)

    if command == "list":
        return list_queries_command(args.namespace, args.output_format, config_path)
    if command == "show":
        return show_query_command(args.reference, config_path)
    if command == "resolve":
        return resolve_query_command(args.reference, args.variables, args.output_format, config_path)
    if command == "add":
        return add_query_command(args.namespace, args.name, args.template, config_path)
    if command == "remove":
        return remove_query_command(args.namespace, args.name, config_path)

    console.print("Usage: podscope queries {list,show,resolve,add,remove}")
    return ExitCode.WARNING

"""
CLI commands for job queues.

Usage:
    podscope queue providers
    podscope queue query queueQueries.jobFilters.failed_jobs_v1-0-0
    podscope queue query --provider redis-bullmq --queue emails --status failed --limit 20
"""

from __future__ import annotations

import argparse
from typing import Any

from podscope.cli.helpers import print_json, resolve_settings, run_async, service_session
from podscope.cli.ux import console, print_table, success, warning
from podscope.config.schema import DEFAULT_QUEUE_LIMIT, MAX_QUEUE_LIMIT, QueueJobStatus
from podscope.core.errors import ExitCode, ValidationError
from podscope.queue.base import format_queue_name
from podscope.queue.models import QueueQueryResult


def providers_command(output_format: str = "table", config_path: str | None = None) -> int:
    async def _run() -> list[Any]:
        async with service_session(resolve_settings(config_path)) as service:
            return await service.registry.available_providers()

    statuses = run_async(_run())

    if output_format == "json":
        print_json([status.to_dict() for status in statuses])
    elif not statuses:
        warning("No queue providers configured")
    else:
        rows = [
            [
                status.name,
                str(status.type),
                status.display_name,
                "[success]healthy[/success]" if status.healthy else "[error]unhealthy[/error]",
            ]
            for status in statuses
        ]
        print_table("Queue Providers", ["Name", "Type", "Display Name", "Health"], rows)

    return ExitCode.SUCCESS if all(s.healthy for s in statuses) else ExitCode.WARNING


def queue_query_command(
    reference: str | None = None,
    inline: dict[str, Any] | None = None,
    output_format: str = "table",
    config_path: str | None = None,
) -> int:
    """Run a queue query by reference or inline and print the result."""
    if (reference is None) == (inline is None):
        raise ValidationError("Give either a queueQueries reference or --provider")

    async def _run() -> QueueQueryResult:
        async with service_session(resolve_settings(config_path)) as service:
            if reference is not None:
                return await service.registry.execute_query_by_ref(reference)
            return await service.registry.execute_query(inline)

    result = run_async(_run())

    if output_format == "json":
        print_json(result.to_dict())
    elif result.is_job_list:
        _print_jobs(result)
    else:
        _print_queues(result)
    return ExitCode.SUCCESS


def _print_queues(result: QueueQueryResult) -> None:
    rows = [
        [
            format_queue_name(queue.name, queue.provider),
            str(queue.stats.waiting),
            str(queue.stats.active),
            str(queue.stats.completed),
            str(queue.stats.failed),
            str(queue.stats.delayed),
            "yes" if queue.paused else "",
        ]
        for queue in result.queues or []
    ]
    print_table(
        f"Queues on {result.provider} ({result.provider_type})",
        ["Queue", "Waiting", "Active", "Completed", "Failed", "Delayed", "Paused"],
        rows,
    )


def _print_jobs(result: QueueQueryResult) -> None:
    if not result.jobs:
        success(f"No matching jobs in {result.queue}")
        return
    rows = [
        [
            job.id,
            job.name or "",
            str(job.status),
            job.created_at.strftime("%Y-%m-%d %H:%M:%S") if job.created_at else "",
            str(job.attempts),
            job.error or job.summary,
        ]
        for job in result.jobs
    ]
    print_table(
        f"{result.queue} on {result.provider} ({result.count} jobs)",
        ["ID", "Name", "Status", "Created", "Attempts", "Error / Data"],
        rows,
    )


def register_queue_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register queue subcommand parser."""
    queue_parser = subparsers.add_parser("queue", help="Inspect job queues")
    queue_sub = queue_parser.add_subparsers(dest="queue_command")

    providers_parser = queue_sub.add_parser("providers", help="List configured queue providers")
    providers_parser.add_argument(
        "--format", "-f", dest="output_format", choices=["table", "json"], default="table"
    )

    query_parser = queue_sub.add_parser("query", help="Run a queue query")
    query_parser.add_argument(
        "reference", nargs="?", help="queueQueries.namespace.queryName"
    )
    query_parser.add_argument("--provider", "-p", help="Provider name for an inline query")
    query_parser.add_argument("--queue", "-q", help="Queue name (omit to list queues)")
    query_parser.add_argument(
        "--status", "-s", choices=[str(status) for status in QueueJobStatus]
    )
    query_parser.add_argument(
        "--limit", "-l", type=int,
        help=f"Maximum jobs (1-{MAX_QUEUE_LIMIT}, default {DEFAULT_QUEUE_LIMIT} or PODSCOPE_DEFAULT_QUEUE_LIMIT)",
    )
    query_parser.add_argument(
        "--format", "-f", dest="output_format", choices=["table", "json"], default="table"
    )


def handle_queue_command(args: argparse.Namespace) -> int:
    """Handle queue command from CLI args."""
    config_path = getattr(args, "config", None)
    command = getattr(args, "queue_command", None)

    if command == "providers":
        return providers_command(args.output_format, config_path)
    if command == "query":
        inline = None
        if args.provider:
            limit = args.limit if args.limit is not None else resolve_settings(config_path).default_queue_limit
            inline = {"provider": args.provider, "queue": args.queue, "limit": limit}
            if args.status:
                inline["status"] = args.status
        return queue_query_command(args.reference, inline, args.output_format, config_path)

    console.print("Usage: podscope queue {providers,query}")
    return ExitCode.WARNING

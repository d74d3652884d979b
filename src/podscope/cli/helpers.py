"""Shared plumbing for CLI commands: settings overrides and service lifetime."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Coroutine, TypeVar

from podscope.config.settings import Settings, get_settings
from podscope.core.errors import ValidationError
from podscope.service import DashboardService, build_service

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async command body from synchronous CLI code."""
    return asyncio.run(coro)


def resolve_settings(config_path: str | None = None) -> Settings:
    settings = get_settings()
    if config_path:
        settings = settings.model_copy(update={"config_path": Path(config_path)})
    return settings


@asynccontextmanager
async def service_session(settings: Settings | None = None) -> AsyncIterator[DashboardService]:
    """Build the service for one command and tear down provider connections afterwards."""
    service = build_service(settings)
    try:
        yield service
    finally:
        await service.aclose()


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def parse_variables(pairs: list[str] | None) -> dict[str, str]:
    """Parse repeated ``--var key=value`` options."""
    variables = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValidationError(f"Expected key=value, got {pair!r}", {"variable": pair})
        variables[key.strip()] = value
    return variables

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Protocol

import structlog

from podscope.core.errors import ConfigurationError
from podscope.history.models import ConfigHistory

logger = structlog.get_logger()


class HistoryStore(Protocol):
    """Persistence backend for one configuration history."""

    key: str

    async def read(self) -> ConfigHistory | None:
        ...

    async def write(self, history: ConfigHistory) -> None:
        ...

    async def clear(self) -> None:
        ...


class JsonFileHistoryStore:
    """Stores ``{"snapshots": [...], "currentIndex": n}`` as a JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()
        self.key = str(self.path.resolve())

    def _read(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        text = self.path.read_text()
        if not text.strip():
            return None
        return json.loads(text)

    def _write(self, payload: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n")

    async def read(self) -> ConfigHistory | None:
        try:
            data = await asyncio.to_thread(self._read)
            return ConfigHistory.from_dict(data) if data is not None else None
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Corrupt configuration history: {e}", {"path": str(self.path)}
            ) from e

    async def write(self, history: ConfigHistory) -> None:
        await asyncio.to_thread(self._write, history.to_dict())
        logger.debug("config_history_saved", path=str(self.path), snapshots=len(history))

    async def clear(self) -> None:
        await asyncio.to_thread(self.path.unlink, missing_ok=True)


class InMemoryHistoryStore:
    """Keeps the serialized history in process memory."""

    def __init__(self, key: str = "memory") -> None:
        self.key = key
        self._payload: dict[str, Any] | None = None

    async def read(self) -> ConfigHistory | None:
        if self._payload is None:
            return None
        return ConfigHistory.from_dict(self._payload)

    async def write(self, history: ConfigHistory) -> None:
        self._payload = history.to_dict()

    async def clear(self) -> None:
        self._payload = None

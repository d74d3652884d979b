"""Tests for configuration history persistence."""

import json

import pytest

from podscope.config.schema import ChangeType
from podscope.core.errors import ConfigurationError
from podscope.history import (
    ConfigHistory,
    ConfigSnapshot,
    InMemoryHistoryStore,
    JsonFileHistoryStore,
)


def _history() -> ConfigHistory:
    return ConfigHistory().append(ConfigSnapshot.capture({"pages": []}, ChangeType.MANUAL, "first"))


class TestJsonFileHistoryStore:
    @pytest.mark.asyncio
    async def test_missing_file_reads_none(self, tmp_path):
        assert await JsonFileHistoryStore(tmp_path / "history.json").read() is None

    @pytest.mark.asyncio
    async def test_write_then_read(self, tmp_path):
        store = JsonFileHistoryStore(tmp_path / "nested" / "history.json")
        history = _history()
        await store.write(history)

        assert await store.read() == history
        data = json.loads(store.path.read_text())
        assert data["currentIndex"] == 0
        assert data["snapshots"][0]["label"] == "first"

    @pytest.mark.asyncio
    async def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            await JsonFileHistoryStore(path).read()

    @pytest.mark.asyncio
    async def test_clear_removes_file(self, tmp_path):
        store = JsonFileHistoryStore(tmp_path / "history.json")
        await store.write(_history())
        await store.clear()
        await store.clear()
        assert not store.path.exists()

    @pytest.mark.asyncio
    async def test_reads_every_change_type(self, tmp_path):
        path = tmp_path / "history.json"
        change_types = ["import", "template", "reset", "edit", "manual", "query-edit"]
        path.write_text(
            json.dumps(
                {
                    "snapshots": [
                        {"id": str(i), "timestamp": "2024-05-01T12:00:00Z", "changeType": kind, "config": {}}
                        for i, kind in enumerate(change_types)
                    ],
                    "currentIndex": 5,
                }
            )
        )

        history = await JsonFileHistoryStore(path).read()

        assert [str(s.change_type) for s in history.snapshots] == change_types
        assert history.snapshots[1].change_type == ChangeType.TEMPLATE

    def test_key_is_resolved_path(self, tmp_path):
        store = JsonFileHistoryStore(tmp_path / "a" / ".." / "history.json")
        assert store.key == str((tmp_path / "history.json").resolve())


class TestInMemoryHistoryStore:
    @pytest.mark.asyncio
    async def test_round_trip_and_clear(self):
        store = InMemoryHistoryStore()
        history = _history()
        await store.write(history)
        assert await store.read() == history
        await store.clear()
        assert await store.read() is None

"""Tests for the immutable configuration history model."""

from datetime import datetime, timezone

import pytest

from podscope.config.schema import ChangeType
from podscope.history import ConfigHistory, ConfigSnapshot


def _snapshot(n: int) -> ConfigSnapshot:
    return ConfigSnapshot(
        id=f"s{n}",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        change_type=ChangeType.MANUAL,
        config={"version": n},
    )


def _history(count: int, current: int) -> ConfigHistory:
    return ConfigHistory(snapshots=tuple(_snapshot(n) for n in range(count)), current_index=current)


class TestConfigSnapshot:
    def test_capture_deep_copies(self):
        config = {"pages": [{"id": "main"}]}
        snapshot = ConfigSnapshot.capture(config, "import", "first")
        config["pages"].append({"id": "other"})

        assert snapshot.config == {"pages": [{"id": "main"}]}
        assert snapshot.change_type == ChangeType.IMPORT
        assert snapshot.timestamp.tzinfo is not None

    def test_config_copy_is_independent(self):
        snapshot = ConfigSnapshot.capture({"pages": []}, ChangeType.MANUAL)
        snapshot.config_copy()["pages"].append("x")
        assert snapshot.config == {"pages": []}

    def test_to_dict_omits_missing_label(self):
        payload = _snapshot(1).to_dict()
        assert "label" not in payload
        assert payload["changeType"] == "manual"

    def test_from_dict_accepts_z_suffix(self):
        snapshot = ConfigSnapshot.from_dict(
            {"id": "a", "timestamp": "2024-05-01T10:00:00Z", "changeType": "reset", "config": {}}
        )
        assert snapshot.timestamp == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
        assert snapshot.label is None


class TestConfigHistory:
    def test_empty_index(self):
        assert ConfigHistory().current_index == -1
        assert ConfigHistory().current is None

    def test_index_is_clamped(self):
        assert _history(3, 10).current_index == 2
        assert _history(3, -5).current_index == 0
        assert ConfigHistory(current_index=4).current_index == -1

    def test_append_moves_pointer_to_end(self):
        history = _history(2, 1).append(_snapshot(9))
        assert history.current_index == 2
        assert history.current.id == "s9"

    def test_append_discards_redo_branch(self):
        history = _history(3, 0).append(_snapshot(9))
        assert [s.id for s in history.snapshots] == ["s0", "s9"]
        assert history.current_index == 1

    def test_append_evicts_oldest(self):
        history = _history(3, 2).append(_snapshot(9), max_snapshots=3)
        assert [s.id for s in history.snapshots] == ["s1", "s2", "s9"]
        assert history.current_index == 2

    def test_transitions_do_not_mutate(self):
        original = _history(2, 1)
        original.append(_snapshot(9))
        original.move_to(0)
        original.remove("s0")
        assert [s.id for s in original.snapshots] == ["s0", "s1"]
        assert original.current_index == 1

    @pytest.mark.parametrize(
        "current, removed, expected_index",
        [
            (2, "s0", 1),  # before the pointer
            (2, "s2", 1),  # current entry
            (0, "s0", 0),  # current entry at the start
            (1, "s3", 1),  # after the pointer
        ],
    )
    def test_remove_pointer_rule(self, current, removed, expected_index):
        history = _history(4, current).remove(removed)
        assert len(history) == 3
        assert history.current_index == expected_index

    def test_remove_last_remaining(self):
        history = _history(1, 0).remove("s0")
        assert len(history) == 0
        assert history.current_index == -1

    def test_remove_unknown(self):
        assert _history(2, 1).remove("missing") is None

    def test_dict_round_trip_keeps_pointer(self):
        history = _history(3, 1)
        restored = ConfigHistory.from_dict(history.to_dict())
        assert restored == history

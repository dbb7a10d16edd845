"""
Tests for InteractionHistory.
"""

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

from tai.config import HistoryConfig
from tai.history import HistoryEntry, InteractionHistory


class TestInteractionHistory:

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert InteractionHistory.load(tmp_path / "none.json").entries == []

    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "h.json"
        history = InteractionHistory(path=path)
        history.add_entry("list files", "Use ls.")

        reloaded = InteractionHistory.load(path)
        assert len(reloaded.entries) == 1
        assert reloaded.entries[0].user_input == "list files"
        assert reloaded.entries[0].timestamp.tzinfo is not None
        assert "entries" in json.loads(path.read_text())

    def test_keeps_most_recent(self, tmp_path: Path) -> None:
        history = InteractionHistory(path=tmp_path / "h.json", max_entries=3)
        for i in range(5):
            history.add_entry(f"q{i}", f"a{i}")
        assert [e.user_input for e in history.entries] == ["q2", "q3", "q4"]
        assert len(InteractionHistory.load(tmp_path / "h.json").entries) == 3

    def test_relevant_entries_window(self, tmp_path: Path) -> None:
        now = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        history = InteractionHistory(path=tmp_path / "h.json", window=timedelta(hours=1))
        history.entries = [
            HistoryEntry(now - timedelta(hours=2), "old", "x"),
            HistoryEntry(now - timedelta(minutes=5), "recent", "y"),
        ]
        relevant = history.relevant_entries(now=now)
        assert [(e.user_input, age) for e, age in relevant] == [("recent", timedelta(minutes=5))]

    def test_clear_removes_file(self, tmp_path: Path) -> None:
        path = tmp_path / "h.json"
        history = InteractionHistory(path=path)
        history.add_entry("q", "a")
        history.clear()
        assert not path.exists()
        assert history.entries == []
        history.clear()

    def test_corrupt_file_is_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "h.json"
        path.write_text("{not json")
        assert InteractionHistory.load(path).entries == []

    def test_naive_timestamps_are_utc(self) -> None:
        entry = HistoryEntry.from_dict({
            "timestamp": "2024-01-01T10:00:00",
            "user_input": "u",
            "llm_response": "r",
        })
        assert entry.timestamp.tzinfo is UTC

    def test_from_config(self, tmp_path: Path) -> None:
        config = HistoryConfig(path=tmp_path / "h.json", max_entries=2, window_minutes=5)
        history = InteractionHistory.from_config(config)
        assert history.max_entries == 2
        assert history.window == timedelta(minutes=5)

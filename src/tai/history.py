"""
Interaction history persisted between runs.

Each finished turn is stored as a user input and the final answer. Only
the most recent entries are kept, and only the ones younger than a time
window are offered back to the model as context.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from tai.config import HistoryConfig

logger = logging.getLogger(__name__)


@dataclass
class HistoryEntry:
    """One past interaction."""
    timestamp: datetime
    user_input: str
    llm_response: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "user_input": self.user_input,
            "llm_response": self.llm_response,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEntry":
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        return cls(
            timestamp=timestamp,
            user_input=data["user_input"],
            llm_response=data["llm_response"],
        )


@dataclass
class InteractionHistory:
    """Bounded list of past interactions backed by a JSON file."""
    path: Path
    max_entries: int = 10
    window: timedelta = timedelta(hours=1)
    entries: list[HistoryEntry] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: HistoryConfig) -> "InteractionHistory":
        return cls.load(
            config.path,
            max_entries=config.max_entries,
            window=timedelta(minutes=config.window_minutes),
        )

    @classmethod
    def load(
        cls,
        path: Path,
        max_entries: int = 10,
        window: timedelta = timedelta(hours=1),
    ) -> "InteractionHistory":
        """
        Load history from `path`.

        A missing, empty or unreadable file gives an empty history; the
        problem is logged and the file is overwritten on the next save.
        """
        history = cls(path=path, max_entries=max_entries, window=window)
        if not path.exists():
            return history
        try:
            text = path.read_text(encoding="utf-8")
            if text.strip():
                data = json.loads(text)
                history.entries = [HistoryEntry.from_dict(e) for e in data.get("entries", [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable history file {path}: {e}")
        return history

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {"entries": [e.to_dict() for e in self.entries]}
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    def add_entry(self, user_input: str, llm_response: str) -> HistoryEntry:
        """Append an interaction, drop the oldest beyond max_entries, and save."""
        entry = HistoryEntry(
            timestamp=datetime.now(UTC),
            user_input=user_input,
            llm_response=llm_response,
        )
        self.entries.append(entry)
        if len(self.entries) > self.max_entries:
            self.entries = self.entries[-self.max_entries:]
        self.save()
        return entry

    def relevant_entries(self, now: datetime | None = None) -> list[tuple[HistoryEntry, timedelta]]:
        """Entries younger than the window, oldest first, with their age."""
        now = now or datetime.now(UTC)
        relevant = []
        for entry in self.entries:
            age = now - entry.timestamp
            if age < self.window:
                relevant.append((entry, age))
        return relevant

    def clear(self) -> None:
        """Forget everything, including the file on disk."""
        self.entries = []
        self.path.unlink(missing_ok=True)

# -*- coding: utf-8 -*-
"""
src/quickcopy/utils/history_manager.py

Keeps a short, newest-first history of copied text, optionally persisted
to a JSON file in the application data directory.
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 10
DEFAULT_HISTORY_FILENAME = "history.json"
PREVIEW_LENGTH = 50
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def make_preview(text: str) -> str:
    preview = text if len(text) <= PREVIEW_LENGTH else text[:PREVIEW_LENGTH - 3] + "..."
    return preview.replace("\n", " ").replace("\r", " ")


@dataclass
class HistoryEntry:
    text: str
    timestamp: str
    preview: str

    @classmethod
    def create(cls, text: str, now: Optional[datetime] = None) -> "HistoryEntry":
        now = now or datetime.now()
        return cls(text=text, timestamp=now.strftime(TIMESTAMP_FORMAT), preview=make_preview(text))


class HistoryManager:
    """
    History sink for recognized text.

    Blank text and text identical to the newest entry are ignored. The list
    is trimmed to ``max_items``. When ``path`` is given the history is loaded
    from it on construction and saved after every change; file errors are
    logged and never raised.
    """

    def __init__(self, max_items: int = DEFAULT_MAX_ITEMS, path: Optional[Path] = None):
        self.max_items = max(1, max_items)
        self.path = Path(path) if path is not None else None
        self._entries: List[HistoryEntry] = []
        self.on_changed: List[Callable[[], None]] = []

        if self.path is not None:
            self._load()

    def append(self, text: str) -> None:
        """Adds ``text`` as the newest entry."""
        if not text or not text.strip():
            return
        if self._entries and self._entries[0].text == text:
            return

        entry = HistoryEntry.create(text)
        self._entries.insert(0, entry)
        del self._entries[self.max_items:]

        logger.info(f"Added to history: {entry.preview}")
        self._save()
        self._notify()

    def entries(self) -> List[HistoryEntry]:
        """A copy of the history, newest first."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        if self.path is not None and self.path.exists():
            try:
                self.path.unlink()
            except OSError as e:
                logger.error(f"Failed to delete history file: {e}")
        self._notify()

    def __len__(self) -> int:
        return len(self._entries)

    # --- Persistence ---

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            payload = {"items": [asdict(entry) for entry in self._entries]}
            self.path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to save history: {e}")

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            items = payload.get("items") or []
            self._entries = [HistoryEntry(**item) for item in items][:self.max_items]
            logger.info(f"Loaded {len(self._entries)} items from history")
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.error(f"Failed to load history: {e}")
            self._entries = []

    def _notify(self) -> None:
        for listener in list(self.on_changed):
            try:
                listener()
            except Exception as e:
                logger.error(f"Error in history listener: {e}", exc_info=True)

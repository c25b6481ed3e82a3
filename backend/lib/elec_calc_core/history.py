# backend/lib/elec_calc_core/history.py
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from .io import dump_history, parse_history
from .models import Derivation, HistoryEntry, Reading
from backend.lib.app_logger import get_logger
from backend.lib.local_storage import StorageError

log = get_logger(__name__)

HISTORY_KEY = "recentCalculations"
THEME_KEY = "theme"
THEMES = ("light", "dark")


class HistoryStore:
    """
    Bounded log of recent calculations, newest first.

    `storage` is any object with get(key) / set(key, value) that raises
    StorageError on failure (LocalStorage, S3Storage). Storage problems are
    logged and never propagate: a failed load gives an empty log, a failed
    save keeps the entry in memory.
    """

    def __init__(self, storage, limit: int = 10, key: str = HISTORY_KEY):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.storage = storage
        self.limit = limit
        self.key = key
        self._entries: List[HistoryEntry] = []

    @property
    def entries(self) -> Tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def load(self) -> List[HistoryEntry]:
        try:
            text = self.storage.get(self.key)
            entries = parse_history(text) if text else []
        except (StorageError, ValueError) as e:
            log.error("Could not load calculation history, starting empty: %s", e)
            entries = []
        self._entries = entries[:self.limit]
        return list(self._entries)

    def record(self, reading: Reading, derivation: Derivation,
               now: Optional[datetime] = None) -> HistoryEntry:
        entry = HistoryEntry(
            timestamp=now or datetime.now(timezone.utc),
            reading=reading,
            derivation=derivation,
        )
        # Add to the front, evict the oldest past the limit
        self._entries.insert(0, entry)
        del self._entries[self.limit:]
        self._save()
        return entry

    def clear(self) -> None:
        self._entries = []
        self._save()

    def _save(self) -> None:
        try:
            self.storage.set(self.key, dump_history(self._entries))
        except StorageError as e:
            log.error("Could not persist calculation history: %s", e)


class ThemeStore:
    def __init__(self, storage, key: str = THEME_KEY):
        self.storage = storage
        self.key = key

    def load(self) -> str:
        try:
            theme = self.storage.get(self.key)
        except StorageError as e:
            log.error("Could not load theme preference: %s", e)
            return "light"
        return theme if theme in THEMES else "light"

    def save(self, theme: str) -> str:
        if theme not in THEMES:
            raise ValueError(f"theme must be one of {THEMES}")
        try:
            self.storage.set(self.key, theme)
        except StorageError as e:
            log.error("Could not persist theme preference: %s", e)
        return theme

    def toggle(self, current: Optional[str] = None) -> str:
        current = current or self.load()
        return self.save("dark" if current == "light" else "light")

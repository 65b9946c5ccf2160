import itertools
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List

from core.types import TranscriptEntry

logger = logging.getLogger(__name__)

TranscriptObserver = Callable[[TranscriptEntry], None]


class Transcript:
    """
    Append-only ordered record of a discussion.

    Entries get monotonically increasing ids starting at 1 and are never changed or
    reordered once appended. Observers are called synchronously after every append, in
    registration order; a failing observer is logged and does not affect the append.
    """

    def __init__(self):
        self._entries: List[TranscriptEntry] = []
        self._ids = itertools.count(1)
        self._observers: List[TranscriptObserver] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(tuple(self._entries))

    def append(self, sender: str, content: str) -> TranscriptEntry:
        """Append a new entry and notify observers."""
        entry = TranscriptEntry(
            id=next(self._ids),
            sender=sender,
            content=content,
            timestamp=datetime.now(),
        )
        self._entries.append(entry)

        for observer in list(self._observers):
            try:
                observer(entry)
            except Exception:
                logger.exception("Transcript observer %r failed on entry %d", observer, entry.id)

        return entry

    def subscribe(self, observer: TranscriptObserver) -> Callable[[], None]:
        """Register an observer; returns a function that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def since(self, entry_id: int) -> List[TranscriptEntry]:
        """Entries appended after entry_id."""
        return [e for e in self._entries if e.id > entry_id]

    @property
    def last_id(self) -> int:
        return self._entries[-1].id if self._entries else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self._entries],
            "count": len(self._entries),
        }

from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime

from .transcript import Transcript


@dataclass
class DiscussionSession:
    """A discussion and its transcript."""
    session_id: str
    transcript: Transcript = field(default_factory=Transcript)
    created_at: datetime = field(default_factory=datetime.now)
    rounds: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "rounds": self.rounds,
            "entries": len(self.transcript),
        }


class DiscussionStore:
    """
    In-memory storage for discussion sessions.

    Nothing here survives a process restart.
    """

    def __init__(self):
        self._sessions: Dict[str, DiscussionSession] = {}

    def get_or_create(self, session_id: str) -> DiscussionSession:
        """Get existing session or create new one."""
        if session_id not in self._sessions:
            self._sessions[session_id] = DiscussionSession(session_id=session_id)
        return self._sessions[session_id]

    def get(self, session_id: str) -> Optional[DiscussionSession]:
        return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        """Drop a session. Returns False if it did not exist."""
        return self._sessions.pop(session_id, None) is not None

    def list_sessions(self) -> List[DiscussionSession]:
        return list(self._sessions.values())


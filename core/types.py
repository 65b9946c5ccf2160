from enum import Enum
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime


USER_SENDER = "User"
SYSTEM_SENDER = "System"


class OutcomeState(Enum):
    SUCCESS = "success"
    RATE_LIMIT_EXHAUSTED = "rate_limit_exhausted"
    NON_RETRYABLE_ERROR = "non_retryable_error"


@dataclass(frozen=True)
class Agent:
    """A panel member bound to one backend credential."""
    id: str
    name: str
    expertise: str
    credential_ref: str = field(repr=False)
    active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        # credential_ref stays behind the gateway boundary
        return {
            "id": self.id,
            "name": self.name,
            "expertise": self.expertise,
            "active": self.active,
        }


@dataclass(frozen=True)
class TranscriptEntry:
    id: int
    sender: str
    content: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sender": self.sender,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class BackendReply:
    """Normalized answer returned by the gateway."""
    answer: str
    strategy: str
    conversation_id: Optional[str] = None
    message_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class DispatchOutcome:
    """Terminal result for one agent in one dispatch round."""
    agent: Agent
    attempts: int
    state: OutcomeState
    entry: TranscriptEntry
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.state is OutcomeState.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent.id,
            "agent_name": self.agent.name,
            "attempts": self.attempts,
            "state": self.state.value,
            "entry_id": self.entry.id,
            "error": self.error,
        }


@dataclass
class RoundResult:
    """Structured output of a single dispatch round."""
    round_id: str
    query: str
    outcomes: List[DispatchOutcome] = field(default_factory=list)
    entries: List[TranscriptEntry] = field(default_factory=list)
    success: bool = True
    error: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    execution_time_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round_id": self.round_id,
            "query": self.query,
            "success": self.success,
            "error": self.error,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "entries": [e.to_dict() for e in self.entries],
            "started_at": self.started_at.isoformat(),
            "execution_time_ms": self.execution_time_ms,
        }

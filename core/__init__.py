"""
Expert Panel Orchestrator

Sends one question to a panel of conversational backends, one agent after another, and
collects the answers into a single ordered transcript:
- Gateway: attaches backend credentials and normalizes replies
- Dispatcher: paces calls, retries rate-limited agents, isolates failures
- Transcript: append-only record of the discussion
"""

__version__ = "1.0.0"

from .types import (
    USER_SENDER,
    SYSTEM_SENDER,
    OutcomeState,
    Agent,
    TranscriptEntry,
    BackendReply,
    DispatchOutcome,
    RoundResult,
)
from .errors import (
    PanelError,
    AgentNotFoundError,
    GatewayError,
    ConfigurationError,
    RateLimited,
    GenericBackendError,
    BackendUnavailable,
    ResponseUnparseable,
)
from .extraction import ExtractionStrategy, DEFAULT_STRATEGIES, extract_answer
from .gateway import Gateway

__all__ = [
    "USER_SENDER",
    "SYSTEM_SENDER",
    "OutcomeState",
    "Agent",
    "TranscriptEntry",
    "BackendReply",
    "DispatchOutcome",
    "RoundResult",
    "PanelError",
    "AgentNotFoundError",
    "GatewayError",
    "ConfigurationError",
    "RateLimited",
    "GenericBackendError",
    "BackendUnavailable",
    "ResponseUnparseable",
    "ExtractionStrategy",
    "DEFAULT_STRATEGIES",
    "extract_answer",
    "Gateway",
]

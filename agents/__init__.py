from .registry import AgentRegistry
from .dispatcher import Dispatcher, DispatchPolicy

__all__ = [
    "AgentRegistry",
    "Dispatcher",
    "DispatchPolicy",
]

from .memory import DiscussionSession, DiscussionStore
from .transcript import Transcript, TranscriptObserver

__all__ = [
    "DiscussionSession",
    "DiscussionStore",
    "Transcript",
    "TranscriptObserver",
]

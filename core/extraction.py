"""
Answer extraction for backend replies.

Backends do not agree on where the answer lives in a reply body. Each known shape is an
ExtractionStrategy; strategies are tried in order and the first one that finds a value
wins.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from .errors import ResponseUnparseable


@dataclass(frozen=True)
class ExtractionStrategy:
    name: str
    extract: Callable[[Dict[str, Any]], Any]

    def apply(self, body: Dict[str, Any]) -> Optional[str]:
        value = self.extract(body)
        if value is None:
            return None
        if isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False)


def _field(name: str) -> Callable[[Dict[str, Any]], Any]:
    return lambda body: body.get(name)


def _message_content(body: Dict[str, Any]) -> Any:
    message = body.get("message")
    if isinstance(message, dict):
        return message.get("content")
    return None


DEFAULT_STRATEGIES: Tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("answer", _field("answer")),
    ExtractionStrategy("message.content", _message_content),
    ExtractionStrategy("response", _field("response")),
    ExtractionStrategy("text", _field("text")),
)


def extract_answer(
    body: Any,
    strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES,
) -> Tuple[str, str]:
    """
    Return (answer, strategy_name) for the first strategy that matches.

    Raises:
        ResponseUnparseable: body is not an object or no strategy matched
    """
    if not isinstance(body, dict):
        raise ResponseUnparseable("Response body is not a JSON object")

    for strategy in strategies:
        answer = strategy.apply(body)
        if answer is not None:
            return answer, strategy.name

    raise ResponseUnparseable(
        "Response matched none of: " + ", ".join(s.name for s in strategies)
    )

"""
Pytest configuration for expert panel tests.
"""

import sys
from pathlib import Path
from typing import Dict, List, Union

import pytest

# Put the repo root on sys.path so tests run without installing the package
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import AgentSpec, Config, Credential  # noqa: E402
from agents.registry import AgentRegistry  # noqa: E402
from core.types import Agent, BackendReply  # noqa: E402


class RecordingSleep:
    """Stand-in for asyncio.sleep that records waits instead of sleeping."""

    def __init__(self):
        self.waits: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


class ScriptedGateway:
    """Gateway double that plays back a scripted list of answers/errors per credential."""

    def __init__(self, script: Dict[str, List[Union[str, Exception]]]):
        self.script = {ref: list(items) for ref, items in script.items()}
        self.calls: List[str] = []

    async def send(self, credential_ref: str, query: str) -> BackendReply:
        self.calls.append(credential_ref)
        item = self.script[credential_ref].pop(0)
        if isinstance(item, Exception):
            raise item
        return BackendReply(answer=item, strategy="answer")


@pytest.fixture
def agents() -> List[Agent]:
    return [
        Agent(id="a", name="Expert A", expertise="Finance", credential_ref="KEY_A"),
        Agent(id="b", name="Expert B", expertise="Risk", credential_ref="KEY_B"),
        Agent(id="c", name="Expert C", expertise="Strategy", credential_ref="KEY_C"),
    ]


@pytest.fixture
def registry(agents) -> AgentRegistry:
    return AgentRegistry(agents)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def config() -> Config:
    return Config(
        credentials={
            "KEY_A": Credential(secret="secret-a", endpoint="https://backend.test/a"),
            "KEY_B": Credential(secret="secret-b", endpoint="https://backend.test/b"),
        },
        agents=[
            AgentSpec("a", "Expert A", "Finance", "KEY_A"),
            AgentSpec("b", "Expert B", "Risk", "KEY_B"),
            AgentSpec("c", "Expert C", "Strategy", "KEY_C"),
        ],
        pacing_seconds=0,
        backoff_base_seconds=0,
    )

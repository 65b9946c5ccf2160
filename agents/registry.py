from dataclasses import replace
from typing import Dict, List

from config import Config
from core.errors import AgentNotFoundError
from core.types import Agent


class AgentRegistry:
    """Ordered roster of panel agents and their active flags."""

    def __init__(self, agents: List[Agent]):
        self._order: List[str] = []
        self._agents: Dict[str, Agent] = {}
        for agent in agents:
            if agent.id in self._agents:
                raise ValueError(f"Duplicate agent id '{agent.id}'")
            self._order.append(agent.id)
            self._agents[agent.id] = agent

    @classmethod
    def from_config(cls, config: Config) -> "AgentRegistry":
        return cls([
            Agent(
                id=spec.id,
                name=spec.name,
                expertise=spec.expertise,
                credential_ref=spec.credential_ref,
                active=spec.active,
            )
            for spec in config.agents
        ])

    def __len__(self) -> int:
        return len(self._order)

    def list_agents(self) -> List[Agent]:
        """All agents in roster order."""
        return [self._agents[agent_id] for agent_id in self._order]

    def get(self, agent_id: str) -> Agent:
        try:
            return self._agents[agent_id]
        except KeyError:
            raise AgentNotFoundError(agent_id) from None

    def set_active(self, agent_id: str, active: bool) -> Agent:
        """Set an agent's active flag and return the updated agent."""
        agent = replace(self.get(agent_id), active=active)
        self._agents[agent_id] = agent
        return agent

    def active_subset(self) -> List[Agent]:
        """
        Snapshot of the active agents in roster order.

        Agents are immutable, so a later set_active() never changes a snapshot that has
        already been handed out.
        """
        return [agent for agent in self.list_agents() if agent.active]

"""
Configuration for the Expert Panel Orchestrator.

Environment Variables:
    DIFY_API_KEY_A/B/C       - Backend credentials for the default roster
    DIFY_API_ENDPOINT_A/B/C  - Optional: per-credential endpoint override
    BACKEND_API_URL          - Optional: default backend endpoint
    PANEL_AGENTS             - Optional: JSON roster overriding the default experts
    PACING_SECONDS           - Optional: wait between agents (default: 3)
    BACKOFF_BASE_SECONDS     - Optional: rate-limit backoff base (default: 10)
    MAX_ATTEMPTS             - Optional: attempts per agent including the first (default: 3)
    MAX_BACKOFF_SECONDS      - Optional: longest wait a Retry-After hint may ask for (default: 60)
    TIMEOUT_SECONDS          - Optional: per-call HTTP timeout (default: 120)

Create a .env file in this directory with:

    DIFY_API_KEY_A=app-your-key-here
    DIFY_API_KEY_B=app-your-key-here
    DIFY_API_KEY_C=app-your-key-here

PANEL_AGENTS example:

    [{"id": "legal", "name": "Legal Advisor", "expertise": "Contracts",
      "credential_ref": "DIFY_API_KEY_LEGAL", "active": true}]

Every credential_ref in the roster is read from the environment variable of the same
name; its endpoint override is the same name with API_KEY replaced by API_ENDPOINT.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

DEFAULT_BACKEND_URL = "https://api.dify.ai/v1/chat-messages"


@dataclass
class Credential:
    """A backend secret and the endpoint it is valid for."""
    secret: str = field(repr=False)
    endpoint: str = DEFAULT_BACKEND_URL


@dataclass
class AgentSpec:
    id: str
    name: str
    expertise: str
    credential_ref: str = field(repr=False)
    active: bool = True


DEFAULT_AGENTS = [
    AgentSpec("expert-a", "Expert A", "Financial Analyst", "DIFY_API_KEY_A"),
    AgentSpec("expert-b", "Expert B", "Risk Manager", "DIFY_API_KEY_B"),
    AgentSpec("expert-c", "Expert C", "Investment Strategist", "DIFY_API_KEY_C"),
]


def _endpoint_variable(credential_ref: str) -> str:
    return credential_ref.replace("API_KEY", "API_ENDPOINT")


@dataclass
class Config:
    """Application configuration."""

    # Backend Settings
    backend_url: str = DEFAULT_BACKEND_URL
    backend_user: str = "default-user"
    credentials: Dict[str, Credential] = field(default_factory=dict, repr=False)

    # Panel Settings
    agents: List[AgentSpec] = field(default_factory=lambda: list(DEFAULT_AGENTS))
    user_name: str = "User"

    # Dispatch Settings
    pacing_seconds: float = 3.0
    backoff_base_seconds: float = 10.0
    max_attempts: int = 3
    max_backoff_seconds: float = 60.0
    timeout_seconds: float = 120.0

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Load configuration from environment variables."""
        env = os.environ if environ is None else environ
        backend_url = env.get("BACKEND_API_URL", DEFAULT_BACKEND_URL)

        roster = env.get("PANEL_AGENTS")
        agents = cls._parse_agents(roster) if roster else list(DEFAULT_AGENTS)

        # Missing secrets are left out; the gateway reports them per agent
        credentials = {}
        for spec in agents:
            secret = (env.get(spec.credential_ref) or "").strip()
            if secret:
                credentials[spec.credential_ref] = Credential(
                    secret=secret,
                    endpoint=env.get(_endpoint_variable(spec.credential_ref), backend_url),
                )

        return cls(
            backend_url=backend_url,
            backend_user=env.get("BACKEND_USER", "default-user"),
            credentials=credentials,
            agents=agents,
            user_name=env.get("PANEL_USER_NAME", "User"),
            pacing_seconds=float(env.get("PACING_SECONDS", "3")),
            backoff_base_seconds=float(env.get("BACKOFF_BASE_SECONDS", "10")),
            max_attempts=int(env.get("MAX_ATTEMPTS", "3")),
            max_backoff_seconds=float(env.get("MAX_BACKOFF_SECONDS", "60")),
            timeout_seconds=float(env.get("TIMEOUT_SECONDS", "120")),
            api_host=env.get("API_HOST", "0.0.0.0"),
            api_port=int(env.get("API_PORT", "8000")),
        )

    @staticmethod
    def _parse_agents(raw: str) -> List[AgentSpec]:
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"PANEL_AGENTS is not valid JSON: {e}") from e
        if not isinstance(items, list):
            raise ValueError("PANEL_AGENTS must be a JSON list")

        agents = []
        for item in items:
            agents.append(AgentSpec(
                id=str(item["id"]),
                name=item["name"],
                expertise=item.get("expertise", ""),
                credential_ref=item["credential_ref"],
                active=bool(item.get("active", True)),
            ))
        return agents

    def get_credential(self, credential_ref: str) -> Optional[Credential]:
        """Get the credential for a reference, if one is configured."""
        credential = self.credentials.get(credential_ref)
        if credential is None or not credential.secret:
            return None
        return credential

    def missing_credentials(self) -> List[str]:
        """Ids of active agents that have no usable credential."""
        return [
            spec.id for spec in self.agents
            if spec.active and self.get_credential(spec.credential_ref) is None
        ]

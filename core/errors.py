from typing import Optional


class PanelError(Exception):
    """Base class for all expert panel errors."""


class AgentNotFoundError(PanelError, LookupError):
    def __init__(self, agent_id: str):
        super().__init__(f"Agent '{agent_id}' not found")
        self.agent_id = agent_id


class GatewayError(PanelError):
    """Raised by the gateway for any per-agent backend failure."""


class ConfigurationError(GatewayError):
    """No usable credential is configured for a credential reference."""


class RateLimited(GatewayError):
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class GenericBackendError(GatewayError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BackendUnavailable(GenericBackendError):
    """The backend could not be reached at all (connection error, timeout)."""


class ResponseUnparseable(GatewayError):
    """A 2xx reply carried none of the known answer fields."""

"""
Credential-hiding gateway to the conversational backends.

Callers only ever hold a credential reference. The gateway looks up the matching secret
in the configuration, attaches it to a single blocking request, and turns the reply into
either a BackendReply or one of the GatewayError subclasses. Retrying is left to the
caller.
"""

import logging
import math
from typing import Any, Dict, Optional, Sequence

import httpx

from config import Config
from .errors import (
    BackendUnavailable,
    ConfigurationError,
    GenericBackendError,
    RateLimited,
    ResponseUnparseable,
)
from .extraction import DEFAULT_STRATEGIES, ExtractionStrategy, extract_answer
from .types import BackendReply

logger = logging.getLogger(__name__)

RATE_LIMIT_CODES = frozenset({
    "too_many_requests",
    "rate_limit_exceeded",
    "provider_quota_exceeded",
    "quota_exceeded",
})
MAX_ERROR_DETAIL = 200


def error_body(response: httpx.Response) -> Optional[Dict[str, Any]]:
    """Decode a JSON object error body, or None when there is none."""
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    # nan, inf and negative waits are ignored
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds


class Gateway:
    """Forwards one-shot queries to a backend on behalf of a credential reference."""

    def __init__(
        self,
        config: Config,
        client: Optional[httpx.AsyncClient] = None,
        strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES,
    ):
        self.config = config
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=config.timeout_seconds)
        self.strategies = tuple(strategies)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def forward(
        self,
        credential_ref: str,
        query: str,
        user: Optional[str] = None,
        inputs: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Send the query with the real secret attached and return the raw response.

        Raises:
            ConfigurationError: no usable secret or endpoint is configured for credential_ref
            BackendUnavailable: the request never produced a response
        """
        credential = self.config.get_credential(credential_ref)
        if credential is None:
            raise ConfigurationError("No credential configured")
        if not credential.secret.isascii():
            raise ConfigurationError("Credential is not a valid header value")

        payload = {
            "inputs": inputs or {},
            "query": query,
            "user": user or self.config.backend_user,
            "response_mode": "blocking",
            "conversation_id": None,
        }
        headers = {
            "Authorization": f"Bearer {credential.secret}",
            "Content-Type": "application/json",
        }

        try:
            return await self.client.post(credential.endpoint, json=payload, headers=headers)
        except httpx.InvalidURL as e:
            raise ConfigurationError("Backend endpoint is not a valid URL") from e
        except httpx.TimeoutException as e:
            raise BackendUnavailable("Backend request timed out") from e
        except httpx.HTTPError as e:
            raise BackendUnavailable(f"Could not reach backend ({type(e).__name__})") from e

    async def send(self, credential_ref: str, query: str) -> BackendReply:
        """Query the backend and return its normalized answer."""
        response = await self.forward(credential_ref, query)

        if not response.is_success:
            raise self.classify(response)

        try:
            body = response.json()
        except ValueError as e:
            raise ResponseUnparseable("Response body is not valid JSON") from e

        answer, strategy = extract_answer(body, self.strategies)
        return BackendReply(
            answer=answer,
            strategy=strategy,
            conversation_id=body.get("conversation_id"),
            message_id=body.get("message_id"),
            raw=body,
        )

    def classify(self, response: httpx.Response) -> Exception:
        """Map a non-2xx response to RateLimited or GenericBackendError."""
        status = response.status_code
        body = error_body(response) or {}

        if status == 429 or body.get("code") in RATE_LIMIT_CODES:
            retry_after = _retry_after(response)
            logger.warning("Backend rate limited request (status=%s, retry_after=%s)",
                           status, retry_after)
            return RateLimited(f"Backend rate limit reached ({status})", retry_after=retry_after)

        detail = body.get("message") or response.text or response.reason_phrase
        detail = str(detail)[:MAX_ERROR_DETAIL]
        logger.warning("Backend returned error status %s", status)
        return GenericBackendError(f"Backend returned {status}: {detail}", status_code=status)

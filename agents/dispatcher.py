import asyncio
import logging
import math
import re
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from config import Config
from core.errors import ConfigurationError, GatewayError, RateLimited, ResponseUnparseable
from core.gateway import Gateway
from core.types import (
    Agent,
    DispatchOutcome,
    OutcomeState,
    RoundResult,
    SYSTEM_SENDER,
    USER_SENDER,
)
from storage.transcript import Transcript

from .registry import AgentRegistry

logger = logging.getLogger(__name__)

ROUND_FAILURE_MESSAGE = "Sorry, something went wrong while collecting the panel's answers."
REDACTED = "[redacted]"


@dataclass
class DispatchPolicy:
    """Pacing and rate-limit retry settings for a dispatch round."""
    pacing_seconds: float = 3.0
    backoff_base_seconds: float = 10.0
    max_attempts: int = 3
    max_backoff_seconds: float = 60.0

    @classmethod
    def from_config(cls, config: Config) -> "DispatchPolicy":
        return cls(
            pacing_seconds=config.pacing_seconds,
            backoff_base_seconds=config.backoff_base_seconds,
            max_attempts=config.max_attempts,
            max_backoff_seconds=config.max_backoff_seconds,
        )

    def backoff(self, retry_number: int, retry_after: Optional[float] = None) -> float:
        """
        Wait before retry number `retry_number` (1-based).

        A backend Retry-After hint may lengthen the linear wait, but never beyond
        max_backoff_seconds.
        """
        wait = retry_number * self.backoff_base_seconds
        if retry_after is not None and math.isfinite(retry_after) and retry_after > wait:
            wait = max(wait, min(retry_after, self.max_backoff_seconds))
        return wait


class Dispatcher:
    """
    Sends one query to every active agent, one agent at a time.

    Responsibilities:
    - Record the user's query before any backend call
    - Pace calls between agents
    - Retry rate-limited agents with an increasing backoff
    - Turn every per-agent failure into a transcript entry so one agent cannot
      abort the round
    """

    def __init__(
        self,
        registry: AgentRegistry,
        gateway: Gateway,
        transcript: Transcript,
        policy: Optional[DispatchPolicy] = None,
        user_name: str = USER_SENDER,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.registry = registry
        self.gateway = gateway
        self.transcript = transcript
        self.policy = policy or DispatchPolicy()
        self.user_name = user_name
        self._sleep = sleep
        self._round_lock = asyncio.Lock()

    async def dispatch(self, query: str) -> RoundResult:
        """
        Run one dispatch round for `query`.

        Rounds on the same dispatcher never overlap; a second call waits for the first.

        Returns:
            RoundResult with one outcome per active agent, unless an unexpected error
            stopped the round (success=False)
        """
        async with self._round_lock:
            return await self._run_round(query)

    async def _run_round(self, query: str) -> RoundResult:
        start_time = time.time()
        result = RoundResult(round_id=str(uuid.uuid4())[:8], query=query)
        first_id = self.transcript.last_id

        try:
            self.transcript.append(self.user_name, query)
            agents = self.registry.active_subset()
            logger.info("Round %s: dispatching to %d agent(s)", result.round_id, len(agents))

            for index, agent in enumerate(agents):
                if index > 0 and self.policy.pacing_seconds > 0:
                    await self._sleep(self.policy.pacing_seconds)
                result.outcomes.append(await self._dispatch_agent(agent, query))

        except Exception as e:
            logger.exception("Round %s stopped by an unexpected error", result.round_id)
            result.success = False
            result.error = self._redact(f"{type(e).__name__}: {e}")
            self.transcript.append(SYSTEM_SENDER, ROUND_FAILURE_MESSAGE)

        result.entries = self.transcript.since(first_id)
        result.execution_time_ms = int((time.time() - start_time) * 1000)
        logger.info("Round %s finished in %dms (success=%s)",
                    result.round_id, result.execution_time_ms, result.success)
        return result

    async def _dispatch_agent(self, agent: Agent, query: str) -> DispatchOutcome:
        """Query one agent, retrying only on rate limits."""
        max_attempts = max(1, self.policy.max_attempts)
        attempt = 0

        while True:
            attempt += 1
            try:
                reply = await self.gateway.send(agent.credential_ref, query)

            except RateLimited as e:
                if attempt >= max_attempts:
                    logger.warning("Agent %s still rate limited after %d attempts", agent.id, attempt)
                    return self._failure(
                        agent, attempt, OutcomeState.RATE_LIMIT_EXHAUSTED,
                        f"{agent.name} could not respond: the backend is still rate limited "
                        f"after {attempt} attempts.",
                        e,
                    )
                wait = self.policy.backoff(attempt, e.retry_after)
                logger.warning("Agent %s rate limited (attempt %d/%d), retrying in %ss",
                               agent.id, attempt, max_attempts, wait)
                self.transcript.append(
                    SYSTEM_SENDER,
                    f"{agent.name} is rate limited. Retrying in {wait:g} seconds "
                    f"(attempt {attempt} of {max_attempts}).",
                )
                await self._sleep(wait)
                continue

            except ConfigurationError as e:
                return self._failure(
                    agent, attempt, OutcomeState.NON_RETRYABLE_ERROR,
                    f"{agent.name} is not configured: no backend credential is set.",
                    e,
                )
            except ResponseUnparseable as e:
                return self._failure(
                    agent, attempt, OutcomeState.NON_RETRYABLE_ERROR,
                    f"Could not parse the response from {agent.name}.",
                    e,
                )
            except GatewayError as e:
                return self._failure(
                    agent, attempt, OutcomeState.NON_RETRYABLE_ERROR,
                    f"{agent.name} failed to respond: {self._redact(str(e))}",
                    e,
                )

            entry = self.transcript.append(agent.name, self._redact(reply.answer))
            logger.info("Agent %s answered on attempt %d (field=%s)", agent.id, attempt, reply.strategy)
            return DispatchOutcome(agent=agent, attempts=attempt, state=OutcomeState.SUCCESS, entry=entry)

    def _failure(
        self,
        agent: Agent,
        attempts: int,
        state: OutcomeState,
        message: str,
        error: GatewayError,
    ) -> DispatchOutcome:
        if state is OutcomeState.NON_RETRYABLE_ERROR:
            logger.warning("Agent %s failed: %s", agent.id, type(error).__name__)
        entry = self.transcript.append(SYSTEM_SENDER, message)
        return DispatchOutcome(
            agent=agent,
            attempts=attempts,
            state=state,
            entry=entry,
            error=self._redact(str(error)),
        )

    def _redact(self, text: str) -> str:
        """Strip every credential reference in the roster from text, whole words only."""
        for agent in self.registry.list_agents():
            if agent.credential_ref:
                pattern = rf"(?<!\w){re.escape(agent.credential_ref)}(?!\w)"
                text = re.sub(pattern, REDACTED, text)
        return text

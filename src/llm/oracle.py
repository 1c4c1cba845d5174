# src/llm/oracle.py
"""Text-generation oracle: bounded, tracked calls to an LLM client.

Every call is a suspension point with an explicit deadline. Whatever goes
wrong below (SDK exception, HTTP failure, timeout) surfaces as OracleError or
OracleTimeoutError so callers can drop exactly one unit of work.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from passagelink.core.errors import OracleError, OracleTimeoutError
from passagelink.llm.models import LLMResponse, Message
from passagelink.llm.retry import LLMRetryExhausted, build_retry_configs, with_retry

if TYPE_CHECKING:
    from passagelink.config.settings import Settings
    from passagelink.llm.base_client import BaseLLMClient
    from passagelink.tracking.call_logger import CallLogger

logger = logging.getLogger(__name__)


class TextOracle:
    """generate(system_prompt, user_prompt) -> text, with timeout and retry.

    Args:
        client: Provider adapter.
        timeout_s: Deadline for a single attempt.
        max_retries: Retries for rate-limit and server errors (0 disables).
        max_tokens: Completion token cap.
        temperature: Sampling temperature.
        call_logger: Optional tracker recording every successful call.
    """

    def __init__(
        self,
        client: BaseLLMClient,
        timeout_s: float = 180.0,
        max_retries: int = 0,
        max_tokens: int = 2000,
        temperature: float = 0.2,
        call_logger: CallLogger | None = None,
    ) -> None:
        self._client = client
        self._timeout_s = timeout_s
        self._retry_configs = build_retry_configs(max_retries)
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._call_logger = call_logger

    @classmethod
    def from_settings(
        cls,
        client: BaseLLMClient,
        settings: Settings,
        call_logger: CallLogger | None = None,
    ) -> TextOracle:
        return cls(
            client=client,
            timeout_s=settings.oracle_timeout_s,
            max_retries=settings.oracle_max_retries,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            call_logger=call_logger,
        )

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    async def generate(self, system_prompt: str, user_prompt: str, step: str = "generate") -> str:
        """Return the raw completion text.

        Raises:
            OracleTimeoutError: The call exceeded its deadline.
            OracleError: The provider failed or returned an invalid payload.
        """
        try:
            response: LLMResponse = await with_retry(
                self._attempt,
                system_prompt,
                user_prompt,
                operation=step,
                retry_configs=self._retry_configs,
            )
        except LLMRetryExhausted as exc:
            last = exc.last_error
            if isinstance(last, OracleError):
                raise last
            if exc.error_type == "timeout":
                raise OracleTimeoutError("LLM request", self._timeout_s) from last
            raise OracleError(f"{self._client.provider_name} call failed: {last}") from last

        if self._call_logger is not None:
            self._call_logger.record(step=step, response=response)
        return response.content

    async def _attempt(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        try:
            return await asyncio.wait_for(
                self._client.complete(
                    messages=[Message(role="user", content=user_prompt)],
                    system=system_prompt,
                    max_tokens=self._max_tokens,
                    temperature=self._temperature,
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "LLM request timed out after %.0fs (%s)",
                self._timeout_s, self._client.provider_name,
            )
            raise OracleTimeoutError("LLM request", self._timeout_s) from exc

# src/llm/adapters/compat_adapter.py
"""OpenAI-compatible chat-completions adapter over raw HTTP (httpx).

Targets any endpoint speaking POST {base_url}/chat/completions with
Bearer auth (Llama API, vLLM, LM Studio, OpenRouter...). Error pages served
as text/html are rejected before the body is parsed.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from passagelink.core.errors import OracleError
from passagelink.llm.base_client import BaseLLMClient
from passagelink.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)


class CompatAdapter(BaseLLMClient):
    """Chat completions against an OpenAI-compatible HTTP endpoint."""

    def __init__(
        self,
        model: str,
        base_url: str = "https://api.llama.com/compat/v1",
        api_key: str = "",
        timeout_s: float = 180.0,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._transport = transport

    @property
    def endpoint(self) -> str:
        # Callers may configure either the API prefix or the full endpoint
        if self._base_url.endswith("/chat/completions"):
            return self._base_url
        return f"{self._base_url}/chat/completions"

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.2,
    ) -> LLMResponse:
        payload_messages: list[dict[str, str]] = []
        if system:
            payload_messages.append({"role": "system", "content": system})
        payload_messages.extend({"role": m.role, "content": m.content} for m in messages)

        payload: dict[str, Any] = {
            "model": self._model,
            "messages": payload_messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        t0 = time.monotonic()
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout_s), transport=self._transport
        ) as client:
            resp = await client.post(self.endpoint, headers=headers, json=payload)
        latency = int((time.monotonic() - t0) * 1000)

        data = self._check_response(resp)
        content = self._extract_content(data)
        usage = data.get("usage") or {}

        return LLMResponse(
            content=content,
            input_tokens=int(usage.get("prompt_tokens", 0) or 0),
            output_tokens=int(usage.get("completion_tokens", 0) or 0),
            model=str(data.get("model") or self._model),
            provider="compat",
            latency_ms=latency,
            raw_response=data,
        )

    @staticmethod
    def _check_response(resp: httpx.Response) -> dict[str, Any]:
        """Reject HTML error pages, non-2xx statuses and non-JSON bodies."""
        content_type = resp.headers.get("content-type", "")
        if "text/html" in content_type.lower():
            raise OracleError(
                f"HTTP {resp.status_code}: received HTML instead of JSON; "
                "the API may be down or returning an error page"
            )

        if resp.status_code < 200 or resp.status_code >= 300:
            detail = resp.text[:500]
            raise OracleError(
                f"HTTP {resp.status_code} {resp.reason_phrase}: {detail}"
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise OracleError(f"Response body is not valid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise OracleError(f"Unexpected response payload type: {type(data).__name__}")
        return data

    @staticmethod
    def _extract_content(data: dict[str, Any]) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise OracleError(f"Malformed chat completion payload: {exc!r}") from exc
        if not content:
            raise OracleError("Empty response from LLM")
        return str(content)

    @property
    def provider_name(self) -> str:
        return "compat"

    @property
    def model_name(self) -> str:
        return self._model

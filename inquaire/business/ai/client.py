"""Minimal OpenAI chat-completions client over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from opentelemetry import trace

from inquaire.context import get_correlation_id

logger = logging.getLogger("inquaire.ai.client")
tracer = trace.get_tracer("inquaire.ai.client")


class OpenAiError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OpenAiClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)

    def chat(
        self,
        model: str,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.3,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        body: dict[str, Any] = {"model": model, "messages": messages, "temperature": temperature}
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        try:
            with tracer.start_as_current_span("openai.chat_completion") as span:
                span.set_attribute("model", model)
                span.set_attribute("correlation_id", get_correlation_id() or "")
                response = self._client.post(
                    f"{self.base_url}/chat/completions",
                    json=body,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
                span.set_attribute("status_code", response.status_code)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise OpenAiError(
                f"chat completion failed with {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise OpenAiError(f"chat completion request failed: {exc}") from exc

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise OpenAiError("malformed chat completion response") from exc
        if not content:
            raise OpenAiError("empty chat completion response")
        return content

    def close(self) -> None:
        self._client.close()

"""OpenAI-compatible model provider.

Connects to any OpenAI-compatible chat completions endpoint
(OpenAI, OpenRouter, vLLM, llama.cpp server, LM Studio, etc.).
"""

from __future__ import annotations

import logging
import time

import httpx

from ricochet.config import SummarizerConfig
from ricochet.models.base import (
    ModelConnectionError,
    ModelProvider,
    ModelResponse,
    TokenUsage,
)

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(ModelProvider):
    """Provider for OpenAI-compatible API endpoints."""

    def __init__(
        self,
        config: SummarizerConfig,
        client: httpx.AsyncClient | None = None,
    ):
        self._config = config
        self._model = config.model
        self._max_tokens = config.max_tokens
        self._temperature = config.temperature
        if client is None:
            headers: dict[str, str] = {}
            api_key = config.api_key.strip()
            if api_key:
                headers["Authorization"] = f"Bearer {api_key}"
            client = httpx.AsyncClient(
                base_url=config.base_url,
                timeout=httpx.Timeout(config.timeout_seconds),
                headers=headers,
            )
        self._client = client

    @property
    def name(self) -> str:
        return self._model

    @staticmethod
    def _http_error_body(response: httpx.Response, limit: int = 200) -> str:
        try:
            return response.text[:limit]
        except (httpx.ResponseNotRead, UnicodeDecodeError):
            return "<response body unavailable>"

    async def complete(
        self,
        messages: list[dict],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ModelResponse:
        payload: dict = {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": temperature if temperature is not None else self._temperature,
        }

        start = time.monotonic()
        try:
            response = await self._client.post("/chat/completions", json=payload)
            response.raise_for_status()
        except httpx.ConnectError as e:
            raise ModelConnectionError(
                f"Cannot connect to model server at "
                f"{self._client.base_url}: {e}",
                original=e,
            ) from e
        except httpx.TimeoutException as e:
            raise ModelConnectionError(
                f"Model request timed out ({self._model}): {e}",
                original=e,
            ) from e
        except httpx.HTTPStatusError as e:
            raise ModelConnectionError(
                f"Model server returned HTTP "
                f"{e.response.status_code}: "
                f"{self._http_error_body(e.response)}",
                original=e,
            ) from e
        latency = int((time.monotonic() - start) * 1000)

        data = response.json()
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices, list):
            raise ModelConnectionError(
                f"Malformed response from {self._model}: missing or empty 'choices'"
            )
        choice = choices[0] if isinstance(choices[0], dict) else {}
        message = choice.get("message") or {}
        text = message.get("content") or ""
        if not isinstance(text, str):
            text = "".join(
                part.get("text", "") for part in text if isinstance(part, dict)
            )

        usage_data = data.get("usage") or {}
        usage = TokenUsage(
            input_tokens=usage_data.get("prompt_tokens", 0),
            output_tokens=usage_data.get("completion_tokens", 0),
            total_tokens=usage_data.get("total_tokens", 0),
        )
        if not text.strip():
            logger.warning(
                "OpenAI-compatible response had empty assistant text: model=%s",
                self._model,
            )

        return ModelResponse(
            text=text.strip(),
            usage=usage,
            model=self._model,
            latency_ms=latency,
            finish_reason=str(choice.get("finish_reason") or ""),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

"""
Generative text client for the Converter and Validator.

Calls the ``models/{model}:generateContent`` REST endpoint and returns
the text of the first candidate. Every failure surfaces as an
LLMServiceError; callers own retries and fallbacks.
"""

import asyncio
import time
from typing import Any

import httpx

from compscout.core.exceptions import LLMServiceError, LLMUnavailableError
from compscout.core.logging import LoggerMixin


def extract_candidate_text(data: Any) -> str | None:
    """Return ``candidates[0].content.parts[0].text`` if present."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


class GenerativeTextClient(LoggerMixin):
    """Thin async client for a Gemini-style generateContent API."""

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str,
        base_url: str,
        timeout: float,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        model_name = self.model if self.model.startswith("models/") else f"models/{self.model}"
        return f"{self.base_url}/{model_name}:generateContent"

    async def generate(self, prompt: str, *, generation_config: dict[str, Any] | None = None) -> str:
        """
        Send one prompt and return the response text, stripped.

        Raises:
            LLMUnavailableError: If no API key is configured
            LLMServiceError: On timeout, non-2xx, or a response without text
        """
        if not self.api_key:
            raise LLMUnavailableError()

        body: dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if generation_config:
            body["generationConfig"] = generation_config

        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.post(
                    self.endpoint,
                    params={"key": self.api_key},
                    json=body,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise LLMServiceError(f"timed out after {self.timeout}s", {"model": self.model}) from e
        except httpx.HTTPError as e:
            raise LLMServiceError(str(e) or type(e).__name__, {"model": self.model}) from e

        elapsed_ms = int((time.monotonic() - started) * 1000)
        if not response.is_success:
            raise LLMServiceError(
                f"HTTP {response.status_code} ({elapsed_ms}ms)",
                {"model": self.model, "status": response.status_code, "body": response.text[:200]},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise LLMServiceError("response is not JSON", {"model": self.model}) from e

        text = extract_candidate_text(data)
        if text is None or not text.strip():
            raise LLMServiceError(f"response had no text content ({elapsed_ms}ms)", {"model": self.model})

        self.logger.info("LLM responded", model=self.model, elapsed_ms=elapsed_ms, chars=len(text.strip()))
        return text.strip()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

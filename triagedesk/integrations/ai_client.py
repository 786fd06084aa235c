"""Text-generation client.

Talks to an OpenAI-compatible chat completions API or to a local Ollama
server. When the configured key is a ``mock_`` key the client returns empty
text, which makes every classification task fall back to its safe default.
"""

from __future__ import annotations

from typing import Any

import httpx

from triagedesk.common.exceptions import ExternalServiceError, TextServiceUnavailableError
from triagedesk.config import settings
from triagedesk.integrations.base import TextGenerationIntegration

_SYSTEM_PROMPT = (
    "You are the triage assistant of a mobile game support team. "
    "Follow the output format requested in each task exactly."
)

# Statuses that leave the service unusable for now, same as a 5xx
_UNUSABLE_STATUS_CODES = frozenset({401, 403, 408, 429})


def _is_mock() -> bool:
    return settings.AI_PROVIDER == "openai" and settings.AI_API_KEY.startswith("mock_")


class TextGenerationClient(TextGenerationIntegration):
    """Raw text generation over HTTP with mock fallback."""

    def __init__(
        self,
        provider: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__("ai")
        self.provider = provider or settings.AI_PROVIDER
        self._transport = transport
        if self.provider == "ollama":
            self._base_url = settings.OLLAMA_HOST.rstrip("/")
            self._model = settings.OLLAMA_MODEL
        else:
            self._base_url = settings.AI_BASE_URL.rstrip("/")
            self._model = settings.AI_MODEL

    @property
    def mock(self) -> bool:
        return self._transport is None and self.provider == "openai" and _is_mock()

    def _http(self, read_timeout: float = 60.0) -> httpx.AsyncClient:
        timeout = httpx.Timeout(read_timeout, connect=settings.AI_CONNECT_TIMEOUT_SECONDS)
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _headers(self) -> dict[str, str]:
        if self.provider == "ollama":
            return {"Content-Type": "application/json"}
        return {
            "Authorization": f"Bearer {settings.AI_API_KEY}",
            "Content-Type": "application/json",
        }

    async def health_check(self) -> bool:
        if self.mock:
            self.logger.info("AI client health check: OK (mock)")
            return True
        path = "/api/tags" if self.provider == "ollama" else "/models"
        try:
            async with self._http(read_timeout=10) as client:
                resp = await client.get(f"{self._base_url}{path}", headers=self._headers())
                if resp.status_code != 200:
                    return False
                if self.provider == "ollama":
                    models = [m.get("name") for m in resp.json().get("models", [])]
                    if self._model not in models:
                        self.logger.warning("Ollama is up but model %s is not pulled", self._model)
                        return False
                return True
        except httpx.HTTPError as e:
            self.logger.error("AI health check failed: %s", e)
            return False

    async def generate(self, prompt: str, temperature: float = 0.2, max_tokens: int = 512) -> str:
        if self.mock:
            return ""
        if self.provider == "ollama":
            url = f"{self._base_url}/api/generate"
            body: dict[str, Any] = {
                "model": self._model,
                "prompt": prompt,
                "stream": False,
                "options": {"temperature": temperature, "num_predict": max_tokens},
            }
        else:
            url = f"{self._base_url}/chat/completions"
            body = {
                "model": self._model,
                "messages": [
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                "temperature": temperature,
                "max_tokens": max_tokens,
            }

        try:
            async with self._http() as client:
                resp = await client.post(url, headers=self._headers(), json=body)
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as e:
            if isinstance(e, httpx.ConnectTimeout):
                raise TextServiceUnavailableError(self.provider, "connection timed out") from e
            raise TimeoutError(f"{self.provider} did not answer in time") from e
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            if code >= 500 or code in _UNUSABLE_STATUS_CODES:
                raise TextServiceUnavailableError(self.provider, f"HTTP {code}") from e
            raise ExternalServiceError(self.provider, f"HTTP {code}") from e
        except httpx.TransportError as e:
            raise TextServiceUnavailableError(self.provider, str(e) or type(e).__name__) from e
        except ValueError:
            # Non-JSON envelope: treat as empty model output, the gateway will fall back
            self.logger.warning("%s returned a non-JSON envelope", self.provider)
            return ""

        if not isinstance(data, dict):
            return ""
        if self.provider == "ollama":
            text = data.get("response") or ""
        else:
            choices = data.get("choices") or [{}]
            text = (choices[0].get("message") or {}).get("content") or ""
        self.logger.debug("Generated %d chars with %s", len(text), self._model)
        return text

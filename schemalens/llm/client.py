"""Language-model client protocol and an OpenAI chat-completions implementation."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request

from schemalens.config import Settings, get_settings


class LLMClientError(RuntimeError):
    """Raised when the LLM provider is misconfigured or its response is unusable."""


@dataclass(slots=True)
class LLMResponse:
    """Raw model output plus the id under which the call is audited."""

    content: str
    conversation_id: str


class LLMClient(Protocol):
    """Protocol for pluggable LLM clients used by enrichment."""

    model_name: str

    def generate(
        self,
        prompt: str,
        system_message: str,
        *,
        temperature: float,
        thinking: bool = False,
    ) -> LLMResponse:
        """Return the model's text response for one prompt."""


@dataclass(slots=True)
class OpenAIChatCompletionsClient:
    """Minimal OpenAI Chat Completions client using stdlib HTTP."""

    api_key: str
    model: str
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: int = 60

    @property
    def model_name(self) -> str:
        return self.model

    def generate(
        self,
        prompt: str,
        system_message: str,
        *,
        temperature: float,
        thinking: bool = False,
    ) -> LLMResponse:
        """Call OpenAI and return the assistant message content."""

        payload: dict[str, Any] = {
            "model": self.model,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system_message},
                {"role": "user", "content": prompt},
            ],
        }
        if thinking:
            payload["reasoning_effort"] = "medium"
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        req = urllib_request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise LLMClientError(f"OpenAI HTTP {exc.code}: {detail}") from exc
        except urllib_error.URLError as exc:
            raise LLMClientError(f"OpenAI request failed: {exc.reason}") from exc

        try:
            decoded = json.loads(raw)
            message = decoded["choices"][0]["message"]
            refusal = message.get("refusal")
            if isinstance(refusal, str) and refusal.strip():
                raise LLMClientError(f"OpenAI refused request: {refusal.strip()}")
            content = message["content"]
            if not isinstance(content, str):
                raise TypeError("OpenAI response content is not a string")
        except LLMClientError:
            raise
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as exc:
            raise LLMClientError("OpenAI returned an unexpected response") from exc
        return LLMResponse(content=content, conversation_id=decoded.get("id") or str(uuid.uuid4()))


def build_default_llm_client(settings: Settings | None = None) -> OpenAIChatCompletionsClient:
    """Create the configured client or raise when no API key is set."""

    settings = settings or get_settings()
    if not settings.openai_api_key:
        raise LLMClientError("SCHEMALENS_OPENAI_API_KEY is not configured")
    return OpenAIChatCompletionsClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.openai_timeout_seconds,
    )

"""Async OpenAI transport shared by the classifier, intent detector, generator and chat."""
from __future__ import annotations

import json
import logging
import re
from time import perf_counter
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from app.core.config import Settings, settings as default_settings
from app.observability.metrics import elapsed_ms, log_metric

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class LLMError(Exception):
    """Transport failure, missing credentials or unusable model output."""


def parse_json_object(raw: str | None) -> Dict[str, Any]:
    """Parse model output that should be a single JSON object."""
    text = _FENCE_RE.sub("", (raw or "").strip())
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise LLMError(f"model returned invalid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise LLMError("model returned JSON that is not an object")
    return parsed


class LLMClient:
    """Thin wrapper over AsyncOpenAI with an explicit per-call timeout and no SDK retries."""

    def __init__(self, client: Optional[AsyncOpenAI], *, timeout_seconds: float = 30.0) -> None:
        self._client = client
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "LLMClient":
        config = config or default_settings
        if not config.openai_api_key:
            logger.warning("OPENAI_API_KEY missing; model calls will fail and callers fall back.")
            return cls(None, timeout_seconds=config.llm_timeout_seconds)
        client = AsyncOpenAI(
            api_key=config.openai_api_key,
            timeout=config.llm_timeout_seconds,
            max_retries=0,
        )
        return cls(client, timeout_seconds=config.llm_timeout_seconds)

    @property
    def available(self) -> bool:
        return self._client is not None

    async def complete_text(
        self,
        *,
        model: str,
        messages: List[Dict[str, str]],
        temperature: float | None = None,
        max_tokens: int | None = None,
        response_format: Dict[str, Any] | None = None,
        label: str = "chat",
    ) -> str:
        if self._client is None:
            raise LLMError("OpenAI client is not configured")

        kwargs: Dict[str, Any] = {"model": model, "messages": messages}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if response_format is not None:
            kwargs["response_format"] = response_format

        start = perf_counter()
        try:
            completion = await self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            log_metric("llm.call.failed", 1, {"label": label, "model": model})
            raise LLMError(f"{label} call failed: {exc}") from exc
        finally:
            log_metric("llm.call.latency_ms", elapsed_ms(start), {"label": label, "model": model})

        choices = getattr(completion, "choices", None) or []
        content = choices[0].message.content if choices else None
        return content or ""

    async def complete_json(
        self,
        *,
        model: str,
        system: str,
        user: str,
        temperature: float | None = 0,
        max_tokens: int | None = None,
        json_schema: Dict[str, Any] | None = None,
        label: str = "json",
    ) -> Dict[str, Any]:
        """Request a JSON object; json_schema switches to strict structured output."""
        if json_schema is not None:
            response_format: Dict[str, Any] = {"type": "json_schema", "json_schema": json_schema}
        else:
            response_format = {"type": "json_object"}
        raw = await self.complete_text(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            response_format=response_format,
            label=label,
        )
        return parse_json_object(raw)

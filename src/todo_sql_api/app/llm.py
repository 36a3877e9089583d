from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Protocol
from urllib import error, parse, request

from .config import Settings

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Raised when a completion provider cannot produce a reply."""


class CompletionProvider(Protocol):
    """Interface for free-text completions. Replies are untrusted text."""

    def complete(
        self,
        prompt: str,
        *,
        temperature: float,
        max_tokens: int,
        timeout_s: float,
    ) -> str: ...


class _JsonHttpAdapter:
    """Shared POST-with-retry plumbing for the REST completion adapters."""

    provider_name = "http"

    def __init__(self, *, model: str, max_retries: int = 0, backoff_s: float = 0.2) -> None:
        self.model = model
        self.max_retries = max(0, max_retries)
        self.backoff_s = max(0.0, backoff_s)

    def _request_with_retry(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str],
        timeout_s: float,
    ) -> dict[str, Any]:
        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return self._request(url, payload, headers=headers, timeout_s=timeout_s)
            except (TimeoutError, ValueError, error.URLError) as exc:
                last_error = exc
                logger.warning(
                    "%s request failed attempt=%d/%d model=%s reason=%s",
                    self.provider_name,
                    attempt + 1,
                    self.max_retries + 1,
                    self.model,
                    exc,
                )
                if attempt < self.max_retries and self.backoff_s > 0:
                    time.sleep(self.backoff_s)
        raise ProviderError(f"{self.provider_name} request failed: {last_error}") from last_error

    def _request(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str],
        timeout_s: float,
    ) -> dict[str, Any]:
        if _trace_enabled():
            logger.warning(
                "LLM trace request provider=%s model=%s timeout_s=%s",
                self.provider_name,
                self.model,
                timeout_s,
            )
        req = request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={"Content-Type": "application/json", **headers},
        )
        try:
            with request.urlopen(req, timeout=timeout_s) as response:
                body = response.read().decode("utf-8")
        except error.HTTPError as exc:
            raw_error = exc.read().decode("utf-8", errors="replace")
            raise error.HTTPError(
                exc.url,
                exc.code,
                f"{self.provider_name} API request failed: {raw_error}",
                exc.headers,
                exc.fp,
            ) from exc
        if _trace_enabled():
            logger.warning(
                "LLM trace response provider=%s model=%s status=ok",
                self.provider_name,
                self.model,
            )
        return json.loads(body)


class OpenAIChatCompletionsAdapter(_JsonHttpAdapter):
    """Adapter for OpenAI-compatible chat completions APIs (Groq, OpenAI)."""

    provider_name = "chat_completions"

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "llama3-8b-8192",
        base_url: str = "https://api.groq.com/openai/v1",
        max_retries: int = 0,
        backoff_s: float = 0.2,
    ) -> None:
        super().__init__(model=model, max_retries=max_retries, backoff_s=backoff_s)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def complete(
        self,
        prompt: str,
        *,
        temperature: float,
        max_tokens: int,
        timeout_s: float,
    ) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        response_json = self._request_with_retry(
            f"{self.base_url}/chat/completions",
            payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout_s=timeout_s,
        )
        return self._extract_content(response_json).strip()

    @staticmethod
    def _extract_content(response_json: dict[str, Any]) -> str:
        choices = response_json.get("choices", [])
        if not choices:
            return ""

        message = choices[0].get("message", {})
        content = message.get("content", "")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            text_segments: list[str] = []
            for item in content:
                if isinstance(item, dict):
                    text = item.get("text")
                    if isinstance(text, str):
                        text_segments.append(text)
            return "".join(text_segments)
        return ""


class GeminiGenerateContentAdapter(_JsonHttpAdapter):
    """Adapter for the Google Generative Language ``generateContent`` API."""

    provider_name = "gemini"

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        max_retries: int = 0,
        backoff_s: float = 0.2,
    ) -> None:
        super().__init__(model=model, max_retries=max_retries, backoff_s=backoff_s)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def complete(
        self,
        prompt: str,
        *,
        temperature: float,
        max_tokens: int,
        timeout_s: float,
    ) -> str:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        query = parse.urlencode({"key": self.api_key})
        response_json = self._request_with_retry(
            f"{self.base_url}/models/{self.model}:generateContent?{query}",
            payload,
            headers={},
            timeout_s=timeout_s,
        )
        return self._extract_text(response_json)

    @staticmethod
    def _extract_text(response_json: dict[str, Any]) -> str:
        candidates = response_json.get("candidates", [])
        if not candidates:
            return ""
        content = candidates[0].get("content", {})
        parts = content.get("parts", []) if isinstance(content, dict) else []
        text_segments = [
            part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        return "".join(text_segments)


def build_generator_provider(settings: Settings) -> CompletionProvider | None:
    api_key = settings.resolved_generator_api_key()
    if not api_key:
        return None
    return OpenAIChatCompletionsAdapter(
        api_key=api_key,
        model=settings.generator_model,
        base_url=settings.generator_base_url,
        max_retries=settings.llm_max_retries,
        backoff_s=settings.llm_backoff_s,
    )


def build_validator_provider(settings: Settings) -> CompletionProvider | None:
    api_key = settings.resolved_validator_api_key()
    if not api_key:
        return None
    return GeminiGenerateContentAdapter(
        api_key=api_key,
        model=settings.validator_model,
        base_url=settings.validator_base_url,
        max_retries=settings.llm_max_retries,
        backoff_s=settings.llm_backoff_s,
    )


def _trace_enabled() -> bool:
    return os.getenv("TODO_SQL_LLM_TRACE", "0").strip() == "1"

"""Pluggable text-completion capability used by the AI scoring tier.

Anything with ``complete(system, user) -> str`` works. The default talks to
an OpenAI-compatible chat endpoint (OpenAI itself, or Groq via base_url).
"""
from __future__ import annotations

import os
from typing import Protocol

from remote_jobs.config import SearchSettings, get_env
from remote_jobs.log import get_logger
from remote_jobs.retry import retry

log = get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
GROQ_DEFAULT_MODEL = "llama-3.3-70b-versatile"


class TextCompletion(Protocol):
    def complete(self, system: str, user: str) -> str: ...


def _transient_errors() -> tuple[type[BaseException], ...]:
    from openai import APIConnectionError, APITimeoutError

    return (APIConnectionError, APITimeoutError)


class OpenAICompletion:
    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str = "",
        timeout: float = 30.0,
        max_tokens: int = 600,
    ) -> None:
        from openai import OpenAI

        self.model = model
        self.max_tokens = max_tokens
        self._client = OpenAI(
            api_key=api_key,
            base_url=base_url or None,
            timeout=timeout,
            max_retries=0,
        )
        self._call = retry(
            max_attempts=2, base_delay=2.0, retryable=_transient_errors()
        )(self._create)

    def _create(self, system: str, user: str) -> str:
        r = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=0.1,
            max_tokens=self.max_tokens,
        )
        return (r.choices[0].message.content or "").strip()

    def complete(self, system: str, user: str) -> str:
        return self._call(system, user)


def build_completion(settings: SearchSettings) -> TextCompletion | None:
    """OpenAI if OPENAI_API_KEY is set, else Groq if GROQ_API_KEY is; else None."""
    openai_key = get_env("OPENAI_API_KEY")
    groq_key = get_env("GROQ_API_KEY")
    if openai_key:
        log.info("AI scoring enabled (model=%s)", settings.llm_model)
        return OpenAICompletion(
            openai_key, settings.llm_model,
            base_url=settings.llm_base_url, timeout=settings.llm_timeout,
        )
    if groq_key:
        model = os.environ.get("GROQ_LLM_MODEL", GROQ_DEFAULT_MODEL).strip()
        log.info("AI scoring enabled via Groq (model=%s)", model)
        return OpenAICompletion(
            groq_key, model,
            base_url=settings.llm_base_url or GROQ_BASE_URL, timeout=settings.llm_timeout,
        )
    log.info("No LLM key configured — heuristic scoring only")
    return None

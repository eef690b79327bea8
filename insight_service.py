"""
Insight Service — the one seam to the external natural-language generator.

The engine only asks this service to phrase predictions and narratives;
no statistic is ever computed by it. Callers get an InsightResult back
and branch on ``ok``: a timeout, an API error or an empty reply are
expected degradations, not exceptions.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from openai import OpenAI

import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InsightResult:
    """Either generated text (ok=True) or the reason there is none."""
    ok: bool
    text: str = ""
    error: Optional[str] = None

    @classmethod
    def success(cls, text: str) -> "InsightResult":
        return cls(ok=True, text=text)

    @classmethod
    def failure(cls, error: str) -> "InsightResult":
        return cls(ok=False, error=error)


class InsightGenerator(ABC):
    """Capability interface: turn a prompt into text, or report why not."""

    @abstractmethod
    def generate(self, prompt: str, system_prompt: Optional[str] = None,
                 temperature: Optional[float] = None) -> InsightResult:
        ...


class OpenAIInsightGenerator(InsightGenerator):
    """
    InsightGenerator backed by the OpenAI chat completions API.

    Each call is single-shot with a bounded timeout and no SDK retries,
    so a slow service routes straight to the caller's fallback.

    Raises:
        ConfigurationError: At construction, when no API key is configured.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 timeout: Optional[float] = None, client: Optional[OpenAI] = None):
        # Try database first, then environment variable
        api_key = api_key or config.get_api_key('openai') or config.OPENAI_API_KEY
        if not api_key and client is None:
            raise config.ConfigurationError(
                "OPENAI_API_KEY is not set. Add it to your .env file or database."
            )

        self.model = model or config.OPENAI_MODEL
        self.timeout = timeout or config.INSIGHT_TIMEOUT_SECONDS
        self.client = client or OpenAI(
            api_key=api_key,
            timeout=self.timeout,
            max_retries=0,
        )

    def generate(self, prompt: str, system_prompt: Optional[str] = None,
                 temperature: Optional[float] = None) -> InsightResult:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=config.INSIGHT_TEMPERATURE if temperature is None else temperature,
                max_tokens=config.OPENAI_MAX_TOKENS,
            )
        except Exception as e:
            logger.warning(f"Insight service call failed: {e}")
            return InsightResult.failure(str(e))

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info(
                f"  Tokens used: {usage.prompt_tokens} input + "
                f"{usage.completion_tokens} output = {usage.total_tokens} total"
            )

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            logger.warning("Insight service returned an empty response")
            return InsightResult.failure("empty response")

        return InsightResult.success(content)


class StubInsightGenerator(InsightGenerator):
    """
    Deterministic InsightGenerator for tests and offline runs.

    ``response`` may be a string (always returned), a callable taking the
    prompt, or None (every call fails, forcing the fallback path).
    """

    def __init__(self, response=None, error: str = "insight service unavailable"):
        self.response = response
        self.error = error
        self.prompts = []

    def generate(self, prompt: str, system_prompt: Optional[str] = None,
                 temperature: Optional[float] = None) -> InsightResult:
        self.prompts.append(prompt)
        if self.response is None:
            return InsightResult.failure(self.error)
        text = self.response(prompt) if callable(self.response) else self.response
        return InsightResult.success(text)


def create_insight_generator(require_credentials: Optional[bool] = None) -> InsightGenerator:
    """
    Build the environment's InsightGenerator.

    With credentials, returns the OpenAI implementation. Without, returns
    an always-failing stub (predictions use the fallback) unless
    credentials are required, in which case ConfigurationError propagates.
    """
    if require_credentials is None:
        require_credentials = config.REQUIRE_INSIGHT_SERVICE

    try:
        return OpenAIInsightGenerator()
    except config.ConfigurationError:
        if require_credentials:
            raise
        logger.warning("No OpenAI API key configured; insights will use deterministic fallbacks")
        return StubInsightGenerator(error="no insight service credentials configured")

"""
Text-generation client.

Every call into the external generation service goes through a
:class:`GenerationClient`. The OpenAI-backed implementation bounds each call
with ``GENERATION_TIMEOUT_SECONDS`` and retries transient transport errors;
anything else surfaces as :class:`GenerationError`.
"""

import asyncio
import json
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from onboarding.common.error_handling import GenerationError, GenerationTimeoutError, retry
from onboarding.common.logger import get_logger
from onboarding.config import Settings, settings as default_settings

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful corporate training assistant. Output only what is asked."

TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


class GenerationClient(ABC):
    """Anything that can turn a prompt into text."""

    @abstractmethod
    async def complete(self, prompt: str, system: Optional[str] = None) -> str:
        """
        Run one completion.

        Args:
            prompt: User-turn instruction
            system: Optional system prompt

        Returns:
            The raw text of the response

        Raises:
            GenerationError: If the service fails or times out
        """
        pass


class OpenAIGenerationClient(GenerationClient):
    """Chat-completions client with a lazily created ``AsyncOpenAI`` instance."""

    def __init__(self, config: Optional[Settings] = None):
        self._settings = config or default_settings
        self._client: Optional[AsyncOpenAI] = None
        self._create_with_retry = retry(
            max_retries=self._settings.GENERATION_MAX_RETRIES,
            retry_delay=1.0,
            backoff_factor=2.0,
            retry_exceptions=TRANSIENT_ERRORS,
        )(self._create)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            api_key = self._settings.OPENAI_API_KEY
            if not api_key:
                raise GenerationError("OPENAI_API_KEY is not set. Add it to your .env file.")
            # Retries are handled by the retry decorator
            self._client = AsyncOpenAI(api_key=api_key, max_retries=0)
        return self._client

    async def _create(self, prompt: str, system: str) -> str:
        response = await self._get_client().chat.completions.create(
            model=self._settings.GENERATION_MODEL,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=self._settings.GENERATION_TEMPERATURE,
            max_tokens=self._settings.GENERATION_MAX_TOKENS,
        )
        return response.choices[0].message.content or ""

    async def complete(self, prompt: str, system: Optional[str] = None) -> str:
        timeout = self._settings.GENERATION_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(
                self._create_with_retry(prompt, system or DEFAULT_SYSTEM_PROMPT),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Generation call exceeded {timeout}s")
            raise GenerationTimeoutError(timeout, cause=e)
        except GenerationError:
            raise
        except openai.OpenAIError as e:
            logger.error(f"Generation call failed: {type(e).__name__}: {e}")
            raise GenerationError(f"Generation service error: {e}", cause=e)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if the response has one."""
    if not text:
        return ""
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_json_payload(text: str) -> Any:
    """
    Parse a generator response as JSON after stripping code fences.

    Raises:
        ValueError: If the text is not valid JSON
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise ValueError("Empty response")
    return json.loads(cleaned)

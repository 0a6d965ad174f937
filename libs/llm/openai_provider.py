"""OpenAI LLM provider for job matching."""

import logging
import os
import time
from typing import Optional

from openai import APIConnectionError, APIError, APITimeoutError, OpenAI

from libs.errors import AIMatchingError
from .provider_base import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


class OpenAILLMProvider(LLMProvider):
    """OpenAI chat-completions provider.

    The client is only built when a key is present; a missing or malformed
    key surfaces as ``AIMatchingError(reason="missing_api_key")`` at call time
    so the engine can fall back instead of failing at startup.
    """

    def __init__(self, api_key: Optional[str] = None, model: str = "gpt-4o-mini", timeout: float = 30.0):
        """Initialize OpenAI LLM provider.

        Args:
            api_key: OpenAI API key. If None, reads from OPENAI_API_KEY env var.
            model: OpenAI model to use (gpt-4o-mini, gpt-4o, ...)
            timeout: Request timeout in seconds.
        """
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model
        self.timeout = timeout
        self.client = OpenAI(api_key=self.api_key, timeout=timeout) if self.is_configured() else None

        # Model pricing (per 1K tokens)
        self._pricing = {
            "gpt-4": {"input": 0.030, "output": 0.060},
            "gpt-4o": {"input": 0.005, "output": 0.015},
            "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
            "gpt-3.5-turbo": {"input": 0.0005, "output": 0.0015},
        }

    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key.startswith("sk-")

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        if self.client is None:
            raise AIMatchingError("OpenAI API key missing or invalid", reason="missing_api_key")

        start = time.perf_counter()
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
            )
        except APITimeoutError as e:
            raise AIMatchingError(f"OpenAI request timed out after {self.timeout}s", reason="timeout", cause=e) from e
        except (APIConnectionError, APIError) as e:
            raise AIMatchingError(f"OpenAI request failed: {e}", reason="provider_error", cause=e) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise AIMatchingError("No response content from OpenAI", reason="empty_response")

        elapsed_ms = (time.perf_counter() - start) * 1000
        tokens = response.usage.total_tokens if response.usage else 0
        logger.debug(f"OpenAI completion: {len(content)} chars, {tokens} tokens, {elapsed_ms:.0f}ms")
        return LLMResponse(content=content, model_used=self.model, tokens_used=tokens, processing_time_ms=elapsed_ms)

    def get_model_name(self) -> str:
        return self.model

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        pricing = self._pricing.get(self.model, self._pricing["gpt-4o-mini"])
        return (input_tokens / 1000) * pricing["input"] + (output_tokens / 1000) * pricing["output"]

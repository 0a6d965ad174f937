"""Base LLM provider interface for job matching."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class LLMResponse:
    """Raw completion returned by a provider."""
    content: str
    model_used: str
    tokens_used: int
    processing_time_ms: float = 0.0


class LLMProvider(ABC):
    """Abstract base class for LLM providers used in job matching.

    Implementations raise ``libs.errors.AIMatchingError`` for every failure
    (transport, timeout, empty completion) instead of returning a placeholder.
    """

    @abstractmethod
    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        """Run one chat completion and return its text content."""
        pass

    def is_configured(self) -> bool:
        """Whether credentials are present and plausible."""
        return True

    @abstractmethod
    def get_model_name(self) -> str:
        pass

    @abstractmethod
    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        pass

"""Exception hierarchy shared by the matching pipeline and the HTTP layer."""
from __future__ import annotations

from typing import Optional


class JobPingError(Exception):
    """Base class for all JobPing errors"""


class ConfigError(JobPingError):
    """Configuration could not be loaded or failed validation"""


class AIMatchingError(JobPingError):
    """The AI matching stage failed and produced no usable result.

    ``reason`` is a short machine-readable tag (``missing_api_key``,
    ``timeout``, ``empty_response``, ``malformed_response``, ``provider_error``,
    ``circuit_open``) used for metrics and for ``MatchingResult.ai_error``.
    """

    def __init__(self, message: str, reason: str = "provider_error", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.reason = reason
        self.cause = cause


class CircuitOpenError(AIMatchingError):
    def __init__(self, message: str = "AI provider circuit is open"):
        super().__init__(message, reason="circuit_open")


class CheckoutError(JobPingError):
    """Hosted checkout session could not be created"""


class EmbeddingQueueError(JobPingError):
    """Embedding queue run could not be completed"""

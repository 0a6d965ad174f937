"""Embedding provider interface used by the job embedding queue."""

from abc import ABC, abstractmethod
from typing import List

import numpy as np


class EmbeddingProvider(ABC):
    """Turns job text into fixed-size vectors.

    Implementations return one float32 vector per input text, in input order.
    Empty texts map to a zero vector instead of an API call.
    """

    @abstractmethod
    def embed_batch(self, texts: List[str]) -> List[np.ndarray]:
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        pass

    def is_configured(self) -> bool:
        return True

    def embed_text(self, text: str) -> np.ndarray:
        return self.embed_batch([text])[0]

    def cosine_similarity(self, a: np.ndarray, b: np.ndarray) -> float:
        denom = np.linalg.norm(a) * np.linalg.norm(b)
        if denom == 0:
            return 0.0
        return float(np.dot(a, b) / denom)

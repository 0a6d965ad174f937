"""Deterministic embedding provider for tests and local runs."""
import hashlib
from typing import List

import numpy as np

from .provider_base import EmbeddingProvider


class MockEmbeddingProvider(EmbeddingProvider):
    def __init__(self, dimension: int = 8, model: str = "mock-embedding", fail_on: str = None):
        self.dimension = dimension
        self.model = model
        self.fail_on = fail_on
        self.calls = 0

    def embed_batch(self, texts: List[str]) -> List[np.ndarray]:
        self.calls += 1
        vectors = []
        for text in texts:
            if self.fail_on and self.fail_on in text:
                raise RuntimeError(f"embedding failed for text containing {self.fail_on!r}")
            seed = int(hashlib.sha256(text.encode("utf-8")).hexdigest()[:8], 16)
            vectors.append(np.random.default_rng(seed).random(self.dimension, dtype=np.float32))
        return vectors

    def get_dimension(self) -> int:
        return self.dimension

    def get_model_name(self) -> str:
        return self.model

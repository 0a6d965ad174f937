"""OpenAI embedding provider."""

from typing import List, Optional

import numpy as np
from openai import OpenAI

from .provider_base import EmbeddingProvider

DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}

COST_PER_1K = {
    "text-embedding-3-small": 0.00002,
    "text-embedding-3-large": 0.00013,
    "text-embedding-ada-002": 0.00010,
}


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embeds job postings with text-embedding-3-small by default.

    The client is only created when an API key is present, so the provider can
    be constructed at startup and report ``is_configured() == False``.
    """

    def __init__(self, api_key: Optional[str] = None, model: str = "text-embedding-3-small",
                 client: Optional[OpenAI] = None):
        self.api_key = api_key
        self.model = model
        self.client = client or (OpenAI(api_key=api_key) if api_key else None)

    def is_configured(self) -> bool:
        return self.client is not None

    def embed_batch(self, texts: List[str]) -> List[np.ndarray]:
        if not texts:
            return []
        if self.client is None:
            raise RuntimeError("OpenAI API key not configured for embeddings")

        non_empty = [(i, text) for i, text in enumerate(texts) if text and text.strip()]
        results = [np.zeros(self.get_dimension(), dtype=np.float32) for _ in texts]
        if not non_empty:
            return results

        response = self.client.embeddings.create(
            model=self.model,
            input=[text for _, text in non_empty],
            encoding_format="float",
        )
        for (original_idx, _), item in zip(non_empty, response.data):
            results[original_idx] = np.array(item.embedding, dtype=np.float32)
        return results

    def get_dimension(self) -> int:
        return DIMENSIONS.get(self.model, 1536)

    def get_model_name(self) -> str:
        return self.model

    def estimate_cost(self, token_count: int) -> float:
        return (token_count / 1000) * COST_PER_1K.get(self.model, 0.00002)

"""Embedding client: batched LiteLLM embeddings with fixed-dimension checks.

All texts of one call go to the provider in a single ``litellm.embedding()``
request. Inputs are truncated to ``max_input_chars`` first: truncation is
silent and lossy, so callers that need full-document coverage chunk first.
Failures are raised as ProviderError and never retried here.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import litellm

from quarry.config import EmbeddingCfg
from quarry.errors import ProviderError

logger = logging.getLogger(__name__)

litellm.suppress_debug_info = True


class EmbeddingClient:
    """Turn texts into fixed-dimension vectors via LiteLLM.

    Args:
        config: Embedding model, dimension and input limits.
    """

    def __init__(self, config: EmbeddingCfg | None = None) -> None:
        self._config = config or EmbeddingCfg()

    @property
    def model(self) -> str:
        return self._config.model

    @property
    def dimensions(self) -> int:
        return self._config.dimensions

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts* in one batched call; one vector per text, same order.

        Raises:
            ProviderError: If the provider call fails or the response is malformed.
        """
        if not texts:
            return []

        limit = self._config.max_input_chars
        inputs = [t[:limit] for t in texts]

        try:
            response = litellm.embedding(
                model=self._config.model,
                input=inputs,
                num_retries=self._config.num_retries,
            )
        except Exception as exc:
            raise ProviderError(
                f"Embedding request to '{self._config.model}' failed"
            ) from exc

        vectors = self._parse(response, expected=len(inputs))
        logger.debug("Embedded %d texts with %s", len(vectors), self._config.model)
        return vectors

    def embed_one(self, text: str) -> list[float]:
        """Embed a single text (e.g. a search query)."""
        return self.embed([text])[0]

    # ------------------------------------------------------------------
    # Response validation
    # ------------------------------------------------------------------

    def _parse(self, response: object, expected: int) -> list[list[float]]:
        data = getattr(response, "data", None)
        if not data:
            raise ProviderError("Failed to generate embeddings: empty response from provider")
        if len(data) != expected:
            raise ProviderError(
                f"Failed to generate embeddings: expected {expected} vectors, got {len(data)}"
            )

        items = list(enumerate(data))
        if all(_field(item, "index") is not None for _, item in items):
            items.sort(key=lambda pair: _field(pair[1], "index"))

        vectors: list[list[float]] = []
        for _, item in items:
            vector = _field(item, "embedding")
            if not vector:
                raise ProviderError("Failed to generate embeddings: missing embedding in response")
            if len(vector) != self._config.dimensions:
                raise ProviderError(
                    f"Failed to generate embeddings: got {len(vector)} dimensions, "
                    f"expected {self._config.dimensions}"
                )
            vectors.append([float(v) for v in vector])
        return vectors


def _field(item: object, name: str) -> object:
    """Read *name* from a dict-like or attribute-style response item."""
    if isinstance(item, dict):
        return item.get(name)
    try:
        return item[name]  # type: ignore[index]
    except (KeyError, TypeError, IndexError):
        return getattr(item, name, None)

"""Embedding engine for Engram using fastembed."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from fastembed import TextEmbedding

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Anything that turns text into fixed-dimension vectors."""

    @property
    def dimension(self) -> int: ...

    def embed(self, text: str) -> list[float]: ...


class EmbeddingEngine:
    """Handles text embedding using fastembed.

    Uses lazy loading to avoid slow startup times.
    """

    def __init__(self, model_name: str, dimension: int | None = None) -> None:
        """Initialize the embedding engine.

        Args:
            model_name: Name of the fastembed model.
            dimension: Known embedding dimension. Probed from the model if None.
        """
        self._model: TextEmbedding | None = None
        self._model_name = model_name
        self._dimension = dimension

    @property
    def model(self) -> TextEmbedding:
        """Get the embedding model, loading it lazily if needed."""
        if self._model is None:
            logger.info(f"Loading embedding model: {self._model_name}")
            from fastembed import TextEmbedding

            self._model = TextEmbedding(model_name=self._model_name)
            logger.info("Embedding model loaded successfully")
        return self._model

    @property
    def dimension(self) -> int:
        """Get the embedding dimension for the current model."""
        if self._dimension is None:
            # Get dimension by embedding a test string
            test_embedding = list(self.model.embed(["test"]))[0]
            self._dimension = len(test_embedding)
            logger.debug(f"Embedding dimension: {self._dimension}")
        return self._dimension

    def embed(self, text: str) -> list[float]:
        """Embed a single text string."""
        embeddings = list(self.model.embed([text]))
        return embeddings[0].tolist()

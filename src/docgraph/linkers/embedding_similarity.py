"""
Embedding Similarity

Optional semantic matcher for the resolver's fallback strategy. Scores a
detected reference against a candidate node by cosine similarity of
sentence-transformer embeddings of the reference context and the node text.
Requires the ``embeddings`` extra.
"""

import logging
from typing import Any, Dict, Optional

import numpy as np

from ..graph.models import GraphNode
from ..parsers.reference_patterns import DetectedReference

# Optional embedding support
try:
    from sentence_transformers import SentenceTransformer
    EMBEDDING_AVAILABLE = True
except ImportError:
    EMBEDDING_AVAILABLE = False

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class EmbeddingSimilarity:
    """Callable ``(reference, node) -> similarity`` backed by an embedding model."""

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        max_chars: int = 512,
        embedder: Optional[Any] = None,
    ):
        """
        Args:
            model_name: Sentence transformer model name
            max_chars: Texts are truncated to this many characters before encoding
            embedder: Pre-built object with an ``encode(text)`` method; skips
                loading ``model_name``
        """
        self.model_name = model_name
        self.max_chars = max_chars
        self._embedder = embedder
        self._embedding_cache: Dict[str, np.ndarray] = {}

        if self._embedder is None and EMBEDDING_AVAILABLE:
            try:
                self._embedder = SentenceTransformer(model_name)
            except Exception as e:
                logger.warning(f"Failed to load embedding model {model_name}: {e}")
                self._embedder = None
        elif self._embedder is None:
            logger.info("sentence-transformers not installed; embedding similarity disabled")

    @property
    def available(self) -> bool:
        return self._embedder is not None

    def _get_embedding(self, text: str) -> Optional[np.ndarray]:
        """Get or compute embedding for text."""
        if not self.available:
            return None

        text = text[:self.max_chars]
        if text not in self._embedding_cache:
            try:
                self._embedding_cache[text] = np.asarray(self._embedder.encode(text), dtype=float)
            except Exception as e:
                logger.warning(f"Embedding failed: {e}")
                return None
        return self._embedding_cache[text]

    def similarity(self, first: str, second: str) -> float:
        """Cosine similarity of two texts, clamped to [0, 1]."""
        if not first or not second:
            return 0.0
        a = self._get_embedding(first)
        b = self._get_embedding(second)
        if a is None or b is None:
            return 0.0

        score = np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b) + 1e-8)
        return float(np.clip(score, 0.0, 1.0))

    def __call__(self, reference: DetectedReference, node: GraphNode) -> float:
        query = reference.context or reference.text
        return self.similarity(query, f"{node.label}\n{node.content}")

    def clear_cache(self) -> None:
        self._embedding_cache.clear()

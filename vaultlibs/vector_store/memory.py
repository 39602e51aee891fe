"""In-memory vector index using brute-force cosine similarity."""

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog

from ..document_store.models import DocumentRecord
from .base import Neighbour, VectorIndex, VectorIndexQueryError

logger = structlog.get_logger("vector_store.memory")


def cosine_similarity(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of ``query`` against each row of ``matrix``."""
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = matrix @ query / norms
    return np.nan_to_num(scores, nan=0.0)


class InMemoryVectorIndex(VectorIndex):
    """Vector index holding ``(document, embedding)`` pairs in process."""

    def __init__(self):
        self._entries: Dict[str, Tuple[DocumentRecord, np.ndarray]] = {}

    def add(self, document: DocumentRecord, embedding: Sequence[float]) -> None:
        self._entries[document.id] = (document, np.asarray(embedding, dtype=np.float32))

    async def nearest(
        self,
        vector: Sequence[float],
        scope: Optional[str],
        threshold: float,
        limit: int
    ) -> List[Neighbour]:
        candidates = [
            (document, embedding) for document, embedding in self._entries.values()
            if scope is None or document.vault_scope == scope
        ]
        if not candidates:
            return []

        query = np.asarray(vector, dtype=np.float32)
        matrix = np.stack([embedding for _, embedding in candidates])
        if matrix.shape[1] != query.shape[0]:
            raise VectorIndexQueryError(
                f"Vector dimension {query.shape[0]} does not match index dimension {matrix.shape[1]}"
            )

        # Clamp: cosine can be negative, similarity is reported on [0, 1].
        scores = np.clip(cosine_similarity(query, matrix), 0.0, 1.0)
        order = np.argsort(-scores, kind="stable")

        neighbours = [
            (candidates[i][0], float(scores[i])) for i in order
            if scores[i] >= threshold
        ][:limit]

        logger.debug("In-memory similarity search completed", results_count=len(neighbours))
        return neighbours

    async def health_check(self) -> bool:
        return True

# pdfrag/application/similarity.py

from typing import List, Optional, Sequence

import numpy as np

from pdfrag.domain.errors import DimensionMismatchError
from pdfrag.domain.models import ScoredResult, VectorRecord


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.
    A zero-magnitude vector has similarity 0 with everything, never NaN.
    """
    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatchError(a.shape[0], b.shape[0])

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))


class SimilarityEngine:
    """
    Ranks records by cosine similarity to a query embedding.

    A record whose text contains the raw query (case-insensitive) is an
    exact match: its similarity is forced to 1.0 and it always sorts ahead
    of non-exact matches, whatever the threshold.
    """

    def __init__(self, dimension: Optional[int] = None):
        self._dimension = dimension

    def rank(
        self,
        query_embedding: Sequence[float],
        records: List[VectorRecord],
        query_text: Optional[str] = None,
        top_k: int = 5,
        threshold: float = 0.1,
        exclude_document_id: Optional[str] = None,
    ) -> List[ScoredResult]:
        query = np.asarray(query_embedding, dtype=np.float64)
        if query.ndim != 1:
            raise DimensionMismatchError(self._dimension or 0, int(query.size))
        if self._dimension is not None and query.shape[0] != self._dimension:
            raise DimensionMismatchError(self._dimension, query.shape[0])

        candidates = [
            r for r in records
            if exclude_document_id is None or r.metadata.document_id != exclude_document_id
        ]
        if not candidates or top_k <= 0:
            return []

        scores = self._cosine_scores(query, candidates)
        needle = query_text.strip().lower() if query_text else ""

        results = []
        for record, score in zip(candidates, scores):
            exact = bool(needle) and needle in record.metadata.text.lower()
            similarity = 1.0 if exact else float(score)
            if exact or similarity > threshold:
                results.append((exact, ScoredResult(
                    record_id  = record.record_id,
                    metadata   = record.metadata,
                    similarity = similarity,
                )))

        # sorted() is stable: equal scores keep store order
        results.sort(key=lambda pair: (not pair[0], -pair[1].similarity))
        return [result for _, result in results[:top_k]]

    @staticmethod
    def _cosine_scores(query: np.ndarray, records: List[VectorRecord]) -> np.ndarray:
        """Vectorised cosine over the candidate matrix; zero norms give 0."""
        matrix = np.asarray([r.embedding for r in records], dtype=np.float64)
        if matrix.ndim != 2 or matrix.shape[1] != query.shape[0]:
            raise DimensionMismatchError(query.shape[0], matrix.shape[-1] if matrix.ndim == 2 else 0)

        dots = matrix @ query
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
        return np.clip(scores, -1.0, 1.0)

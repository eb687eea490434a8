# pdfrag/application/hybrid_ranker.py

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from pdfrag.application.keyword_scorer import KeywordScorer
from pdfrag.application.similarity import SimilarityEngine
from pdfrag.config import (
    CANDIDATE_MULTIPLIER,
    CONFIDENT_MATCH_THRESHOLD,
    KEYWORD_WEIGHT,
    MIN_FINAL_SCORE,
    SEMANTIC_WEIGHT,
    SIMILARITY_THRESHOLD,
)
from pdfrag.domain.interfaces import RecordStorePort
from pdfrag.domain.models import ScoredResult


def fuse_results(
    keyword_results: List[ScoredResult],
    semantic_results: List[ScoredResult],
    keyword_weight: float = KEYWORD_WEIGHT,
    semantic_weight: float = SEMANTIC_WEIGHT,
    confident_match_threshold: float = CONFIDENT_MATCH_THRESHOLD,
) -> List[ScoredResult]:
    """
    Merge keyword and semantic matches into one list sorted by final score.

    Contributions:
        keyword  = scaled_score * keyword_weight        (exact_match > threshold)
                 = scaled_score * keyword_weight / 2    (otherwise)
        semantic = similarity * semantic_weight

    Keyword scores are divided by max(1, best keyword score) so the best
    match contributes at most the full keyword weight. Two results with the
    same literal text are one candidate: found by both signals, the two
    contributions are summed and the total clamped to [0, 1].
    """
    best_keyword = max((r.keyword_score or 0.0 for r in keyword_results), default=0.0)
    scale = max(1.0, best_keyword)

    merged: Dict[str, ScoredResult] = {}

    for result in keyword_results:
        if result.text in merged:
            continue
        weight = keyword_weight
        if (result.exact_match_score or 0.0) <= confident_match_threshold:
            weight = keyword_weight / 2
        contribution = (result.keyword_score or 0.0) / scale * weight
        merged[result.text] = replace(result, final_score=contribution)

    seen_semantic = set()
    for result in semantic_results:
        if result.text in seen_semantic:
            continue
        seen_semantic.add(result.text)

        contribution = (result.similarity or 0.0) * semantic_weight
        existing = merged.get(result.text)
        if existing is None:
            merged[result.text] = replace(result, final_score=contribution)
        else:
            merged[result.text] = replace(
                existing,
                similarity  = result.similarity,
                final_score = existing.final_score + contribution,
            )

    fused = [
        replace(result, final_score=min(1.0, max(0.0, result.final_score)))
        for result in merged.values()
    ]
    fused.sort(key=lambda r: r.final_score, reverse=True)
    return fused


class HybridRanker:
    """
    Hybrid search over one store snapshot:

        store.get_all() ─┬─> KeywordScorer   ─┐
                         └─> SimilarityEngine ─┴─> fuse_results → threshold → top-k

    Both signals read the same snapshot and run concurrently. If either one
    fails the error propagates. A list built from a single signal would look
    like a normal answer to the caller.
    """

    def __init__(
        self,
        store: RecordStorePort,
        similarity_engine: Optional[SimilarityEngine] = None,
        keyword_scorer: Optional[KeywordScorer] = None,
        keyword_weight: float = KEYWORD_WEIGHT,
        semantic_weight: float = SEMANTIC_WEIGHT,
        confident_match_threshold: float = CONFIDENT_MATCH_THRESHOLD,
    ):
        """
        Args:
            store:                     Record store to read snapshots from.
            similarity_engine:         Defaults to one sized to the store.
            keyword_scorer:            Defaults to BM25 with config parameters.
            keyword_weight:            Weight of confident keyword matches (0-1).
            semantic_weight:           Weight of cosine similarity (0-1).
            confident_match_threshold: exact_match_score above which a keyword
                                       match earns the full keyword weight.
        """
        for name, value in (
            ("keyword_weight", keyword_weight),
            ("semantic_weight", semantic_weight),
            ("confident_match_threshold", confident_match_threshold),
        ):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}.")

        self._store = store
        self._similarity_engine = similarity_engine or SimilarityEngine(store.dimension)
        self._keyword_scorer = keyword_scorer or KeywordScorer()
        self._keyword_weight = keyword_weight
        self._semantic_weight = semantic_weight
        self._confident_match_threshold = confident_match_threshold

    def rank(
        self,
        query_text: str,
        query_embedding: Optional[Sequence[float]] = None,
        top_k: int = 5,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
        min_score: float = MIN_FINAL_SCORE,
        exclude_document_id: Optional[str] = None,
    ) -> List[ScoredResult]:
        """
        Rank stored passages for a query.

        Without `query_embedding` only the keyword signal runs. Results at or
        below `min_score` are dropped; an empty list means nothing relevant
        was found, while storage or dimension problems raise.
        """
        if top_k <= 0:
            return []

        records = self._store.get_all()
        if exclude_document_id is not None:
            records = [r for r in records if r.metadata.document_id != exclude_document_id]

        candidate_count = top_k * CANDIDATE_MULTIPLIER

        with ThreadPoolExecutor(max_workers=2) as pool:
            keyword_future = pool.submit(
                self._keyword_scorer.score, query_text, records, candidate_count,
            )
            semantic_future = None
            if query_embedding is not None:
                semantic_future = pool.submit(
                    self._similarity_engine.rank,
                    query_embedding,
                    records,
                    query_text,
                    candidate_count,
                    similarity_threshold,
                )

            keyword_results = keyword_future.result()
            semantic_results = semantic_future.result() if semantic_future else []

        fused = fuse_results(
            keyword_results,
            semantic_results,
            keyword_weight            = self._keyword_weight,
            semantic_weight           = self._semantic_weight,
            confident_match_threshold = self._confident_match_threshold,
        )
        return [r for r in fused if r.final_score > min_score][:top_k]

# pdfrag/application/search_service.py

from typing import List, Optional

from pdfrag.application.hybrid_ranker import HybridRanker
from pdfrag.application.keyword_scorer import extract_key_terms
from pdfrag.application.similarity import SimilarityEngine
from pdfrag.config import DEFAULT_TOP_K, SIMILARITY_THRESHOLD
from pdfrag.domain.interfaces import EmbeddingPort, RecordStorePort
from pdfrag.domain.models import ContextPassage, ScoredResult


class RetrievalService:
    """
    Core use cases on top of the hybrid ranker:
    - search:                 hybrid keyword + semantic ranking
    - find_similar_passages:  semantic only, other documents only
    - gather_context:         ranked passages shaped for prompt construction

    The service embeds queries itself; the ranker never calls the embedding
    engine. An empty result is a normal outcome, errors always raise.
    """

    def __init__(
        self,
        embedding_engine: EmbeddingPort,
        vector_store: RecordStorePort,
        ranker: Optional[HybridRanker] = None,
        top_k: int = DEFAULT_TOP_K,
    ):
        self._embedding_engine = embedding_engine
        self._vector_store = vector_store
        self._ranker = ranker or HybridRanker(vector_store)
        self._similarity_engine = SimilarityEngine(vector_store.dimension)
        self._top_k = top_k

    def search(
        self,
        query: str,
        top_k: Optional[int] = None,
        exclude_document_id: Optional[str] = None,
    ) -> List[ScoredResult]:
        query = self._clean_query(query)
        query_embedding = self._embedding_engine.encode_single(query)

        return self._ranker.rank(
            query_text          = query,
            query_embedding     = query_embedding,
            top_k               = top_k or self._top_k,
            exclude_document_id = exclude_document_id,
        )

    def find_similar_passages(
        self,
        text: str,
        document_id: Optional[str] = None,
        top_k: Optional[int] = None,
        threshold: float = SIMILARITY_THRESHOLD,
    ) -> List[ScoredResult]:
        """
        Passages semantically close to `text`, excluding `document_id`'s own
        passages so a selection never finds itself.
        """
        text = text.strip()
        if not text:
            raise ValueError("Text cannot be empty.")

        results = self._similarity_engine.rank(
            query_embedding     = self._embedding_engine.encode_single(text),
            records             = self._vector_store.get_all(),
            query_text          = text,
            top_k               = top_k or self._top_k,
            threshold           = threshold,
            exclude_document_id = document_id,
        )
        for result in results:
            result.final_score = max(0.0, min(1.0, result.similarity))
        return results

    def gather_context(self, question: str, top_k: Optional[int] = None) -> List[ContextPassage]:
        """Ranked passages for `question`, in the shape the chat prompt expects."""
        return [
            ContextPassage(
                text      = result.text,
                page      = result.metadata.page_number,
                score     = result.final_score,
                file_name = result.metadata.pdf_name,
            )
            for result in self.search(question, top_k=top_k)
        ]

    @staticmethod
    def _clean_query(query: str) -> str:
        query = query.strip()
        if not query:
            raise ValueError("Query cannot be empty.")
        # "what is X?" → "X"; fall back to the raw query if nothing is left
        return extract_key_terms(query) or query

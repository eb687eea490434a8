# pdfrag/application/keyword_scorer.py

import re
from typing import Dict, List

from rank_bm25 import BM25Plus

from pdfrag.config import BM25_B, BM25_K1, FUZZY_THRESHOLD
from pdfrag.domain.models import ScoredResult, VectorRecord


# Leading interrogatives carry no retrieval signal ("who is Sam Walton?")
QUESTION_PREFIX = re.compile(
    r"^(who|what|where|when|why|how)\s+(is|are|was|were|do|does|did)\s+",
    re.IGNORECASE,
)

# Substituting one of these pairs is a likely typo, so it costs half an edit.
COMMON_SUBSTITUTIONS = {
    "a": "aeioqu",
    "e": "aeiou",
    "i": "ieyo",
    "o": "oau",
    "u": "uov",
    "m": "mn",
    "n": "nm",
    "c": "ck",
    "k": "ck",
    "p": "pb",
    "b": "bp",
    "d": "dr",
    "r": "rd",
}


def normalize_text(text: str) -> str:
    """Lower-case, turn punctuation into spaces, collapse whitespace."""
    text = re.sub(r"[^\w\s]", " ", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def tokenize(text: str) -> List[str]:
    normalized = normalize_text(text)
    return normalized.split(" ") if normalized else []


def extract_key_terms(question: str) -> str:
    """Strip a leading "who is"/"what are"... and trailing question marks."""
    stripped = QUESTION_PREFIX.sub("", question.strip())
    return re.sub(r"\?+$", "", stripped).strip()


def _substitution_cost(char_a: str, char_b: str) -> float:
    if char_a == char_b:
        return 0.0
    if char_b in COMMON_SUBSTITUTIONS.get(char_a, "") or char_a in COMMON_SUBSTITUTIONS.get(char_b, ""):
        return 0.5
    return 1.0


def term_similarity(term_a: str, term_b: str) -> float:
    """
    Typo-aware edit similarity in [0, 1].

    1 - distance / longest length, where the distance is Levenshtein with
    cheaper substitutions for common typos. Terms under three characters
    only match exactly; containment of one term in the other earns +0.2.
    """
    a, b = term_a.lower(), term_b.lower()
    if a == b:
        return 1.0
    if len(a) < 3 or len(b) < 3:
        return 0.0

    previous = [float(i) for i in range(len(a) + 1)]
    for j in range(1, len(b) + 1):
        current = [float(j)] + [0.0] * len(a)
        for i in range(1, len(a) + 1):
            current[i] = min(
                current[i - 1] + 1,
                previous[i] + 1,
                previous[i - 1] + _substitution_cost(a[i - 1], b[j - 1]),
            )
        previous = current

    similarity = 1.0 - previous[len(a)] / max(len(a), len(b))
    if a in b or b in a:
        return min(1.0, similarity + 0.2)
    return max(0.0, similarity)


class KeywordScorer:
    """
    Lexical relevance, independent of embeddings.

    Scores each record with BM25 (TF-IDF with saturating term frequency and
    document-length normalisation), so a passage repeating a name five times
    does not bury one that states it once. BM25+ IDF is used because it stays
    positive even for terms present in most of a small corpus.

    Query terms that appear nowhere in the corpus are expanded with close
    vocabulary terms (typo-aware edit similarity), which lets a misspelled
    name like "Wolton" still reach "Walton". Those fuzzy hits raise the BM25
    score but never the exact-match score.
    """

    def __init__(
        self,
        k1: float = BM25_K1,
        b: float = BM25_B,
        fuzzy_threshold: float = FUZZY_THRESHOLD,
    ):
        self._k1 = k1
        self._b = b
        self._fuzzy_threshold = fuzzy_threshold

    def score(
        self,
        query: str,
        records: List[VectorRecord],
        top_k: int = 5,
    ) -> List[ScoredResult]:
        """
        Returns matches sorted by exact-match score, then BM25 score, both
        descending. A query with no usable terms matches nothing.
        """
        query_tokens = tokenize(query)
        query_terms = list(dict.fromkeys(query_tokens))
        if not query_terms or not records or top_k <= 0:
            return []

        corpus = [tokenize(record.metadata.text) for record in records]
        if not any(corpus):
            return []

        bm25 = BM25Plus(corpus, k1=self._k1, b=self._b, delta=0)
        expanded_terms = self._expand_query(query_terms, bm25.idf)
        bm25_scores = bm25.get_scores(expanded_terms)

        phrase = " ".join(query_tokens)
        results = []
        for record, tokens, bm25_score in zip(records, corpus, bm25_scores):
            exact_match_score = self._exact_match_score(
                phrase, query_terms, len(query_tokens), tokens,
            )
            if bm25_score <= 0 and exact_match_score <= 0:
                continue
            results.append(ScoredResult(
                record_id         = record.record_id,
                metadata          = record.metadata,
                keyword_score     = float(bm25_score),
                exact_match_score = exact_match_score,
            ))

        results.sort(key=lambda r: (-r.exact_match_score, -r.keyword_score))
        return results[:top_k]

    def _expand_query(self, query_terms: List[str], vocabulary: Dict[str, float]) -> List[str]:
        """Add near-miss vocabulary terms for query terms the corpus never uses."""
        expanded = list(query_terms)
        for term in query_terms:
            if term in vocabulary:
                continue
            for candidate in vocabulary:
                # Length gap alone already caps the reachable similarity
                longest = max(len(term), len(candidate))
                if 1.0 - abs(len(term) - len(candidate)) / longest + 0.2 < self._fuzzy_threshold:
                    continue
                if term_similarity(term, candidate) >= self._fuzzy_threshold:
                    expanded.append(candidate)
        return list(dict.fromkeys(expanded))

    @staticmethod
    def _exact_match_score(
        phrase: str,
        query_terms: List[str],
        total_terms: int,
        tokens: List[str],
    ) -> float:
        """Full phrase hit scores 1.0; otherwise distinct terms found over all query terms."""
        text = " ".join(tokens)
        if phrase and phrase in text:
            return 1.0
        token_set = set(tokens)
        matched = sum(1 for term in query_terms if term in token_set)
        return matched / total_terms

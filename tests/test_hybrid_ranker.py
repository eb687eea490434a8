# tests/test_hybrid_ranker.py

from unittest.mock import MagicMock

import pytest

from pdfrag.application.hybrid_ranker import HybridRanker, fuse_results
from pdfrag.application.keyword_scorer import KeywordScorer
from pdfrag.domain.errors import DimensionMismatchError, StorageError
from pdfrag.domain.models import RecordMetadata, ScoredResult
from pdfrag.infrastructure.vector_store import InMemoryRecordStore


def _metadata(text: str, pdf_name: str = "doc.pdf", document_id: str = "doc") -> RecordMetadata:
    return RecordMetadata(document_id=document_id, page_number=1, pdf_name=pdf_name, text=text)


def _keyword(rid: str, text: str, score: float, exact: float) -> ScoredResult:
    return ScoredResult(rid, _metadata(text), keyword_score=score, exact_match_score=exact)


def _semantic(rid: str, text: str, similarity: float) -> ScoredResult:
    return ScoredResult(rid, _metadata(text), similarity=similarity)


@pytest.fixture
def store() -> InMemoryRecordStore:
    store = InMemoryRecordStore(dimension=3)
    store.put("a", [1.0, 0.0, 0.0], _metadata("Sam Walton founded Walmart", "a.pdf", "doc-a"))
    store.put("b", [0.9, 0.1, 0.0], _metadata("Sam Walton Sam Walton retail retail", "b.pdf", "doc-b"))
    store.put("c", [0.0, 1.0, 0.0], _metadata("The retail industry has many players", "c.pdf", "doc-c"))
    return store


# ── fuse_results ──────────────────────────────────────────────────────────────

def test_fusion_sums_both_signals():
    keyword = [_keyword("x", "passage X", score=0.9, exact=1.0)]
    semantic = [_semantic("x", "passage X", similarity=0.8)]

    fused = fuse_results(keyword, semantic, keyword_weight=0.6, semantic_weight=0.4)

    assert len(fused) == 1
    # sum of both contributions, not the max of the two
    assert fused[0].final_score == pytest.approx(0.9 * 0.6 + 0.8 * 0.4)
    assert fused[0].similarity == 0.8
    assert fused[0].keyword_score == 0.9


def test_fusion_caps_at_one():
    keyword = [_keyword("x", "passage X", score=1.0, exact=1.0)]
    semantic = [_semantic("x", "passage X", similarity=1.0)]

    fused = fuse_results(keyword, semantic, keyword_weight=0.8, semantic_weight=0.8)

    assert fused[0].final_score == 1.0


def test_fuzzy_keyword_match_gets_half_weight():
    keyword = [_keyword("x", "passage X", score=1.0, exact=0.5)]

    fused = fuse_results(keyword, [], keyword_weight=0.6, semantic_weight=0.4)

    assert fused[0].final_score == pytest.approx(0.3)


def test_keyword_scores_scaled_by_best_match():
    keyword = [
        _keyword("x", "passage X", score=4.0, exact=1.0),
        _keyword("y", "passage Y", score=2.0, exact=1.0),
    ]

    fused = fuse_results(keyword, [], keyword_weight=0.5, semantic_weight=0.5)

    assert [r.record_id for r in fused] == ["x", "y"]
    assert fused[0].final_score == pytest.approx(0.5)
    assert fused[1].final_score == pytest.approx(0.25)


def test_negative_similarity_clamped_to_zero():
    fused = fuse_results([], [_semantic("x", "passage X", similarity=-0.7)])
    assert fused[0].final_score == 0.0


def test_same_text_is_one_candidate():
    keyword = [_keyword("x1", "duplicated passage", score=1.0, exact=1.0)]
    semantic = [
        _semantic("x2", "duplicated passage", similarity=0.5),
        _semantic("y", "another passage", similarity=0.9),
    ]

    fused = fuse_results(keyword, semantic, keyword_weight=0.6, semantic_weight=0.4)

    assert len(fused) == 2
    assert fused[0].text == "duplicated passage"
    assert fused[0].final_score == pytest.approx(0.6 + 0.2)


# ── HybridRanker ──────────────────────────────────────────────────────────────

def test_rank_scores_are_clamped_and_sorted(store):
    ranker = HybridRanker(store)

    results = ranker.rank("Sam Walton", query_embedding=[1.0, 0.0, 0.0])

    assert {r.record_id for r in results[:2]} == {"a", "b"}
    scores = [r.final_score for r in results]
    assert scores == sorted(scores, reverse=True)
    assert all(0.0 <= s <= 1.0 for s in scores)


def test_rank_keyword_only_without_embedding(store):
    results = HybridRanker(store).rank("retail industry")

    assert results[0].record_id == "c"
    assert all(r.similarity is None for r in results)


def test_rank_min_score_drops_noise(store):
    results = HybridRanker(store).rank("retail", min_score=0.5)

    # b repeats "retail" and takes the full keyword weight; c falls below 0.5
    assert [r.record_id for r in results] == ["b"]


def test_rank_nothing_relevant_is_empty_not_error(store):
    assert HybridRanker(store).rank("zebra crossing", query_embedding=[0.0, 0.0, 1.0]) == []


def test_rank_excludes_document(store):
    results = HybridRanker(store).rank(
        "Sam Walton", query_embedding=[1.0, 0.0, 0.0], exclude_document_id="doc-a",
    )
    assert "a" not in {r.record_id for r in results}


def test_rank_respects_top_k(store):
    assert len(HybridRanker(store).rank("retail walton", query_embedding=[1.0, 1.0, 1.0], top_k=1)) == 1


def test_rank_propagates_storage_errors(store):
    store.close()
    with pytest.raises(StorageError):
        HybridRanker(store).rank("Sam Walton", query_embedding=[1.0, 0.0, 0.0])


def test_rank_propagates_keyword_failures(store):
    scorer = MagicMock(spec=KeywordScorer)
    scorer.score.side_effect = StorageError("index unavailable")

    with pytest.raises(StorageError, match="index unavailable"):
        HybridRanker(store, keyword_scorer=scorer).rank("Sam", query_embedding=[1.0, 0.0, 0.0])


def test_rank_rejects_wrong_query_dimension(store):
    with pytest.raises(DimensionMismatchError):
        HybridRanker(store).rank("Sam", query_embedding=[1.0, 0.0])


@pytest.mark.parametrize("weights", [(1.5, 0.4), (0.6, -0.1)])
def test_weights_must_be_fractions(store, weights):
    with pytest.raises(ValueError):
        HybridRanker(store, keyword_weight=weights[0], semantic_weight=weights[1])

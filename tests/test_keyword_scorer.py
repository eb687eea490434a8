# tests/test_keyword_scorer.py

import pytest

from pdfrag.application.keyword_scorer import (
    KeywordScorer,
    extract_key_terms,
    normalize_text,
    term_similarity,
    tokenize,
)
from pdfrag.domain.models import RecordMetadata, VectorRecord


def _make_record(rid: str, text: str) -> VectorRecord:
    return VectorRecord(
        record_id=rid,
        embedding=[0.0, 0.0, 0.0],
        metadata=RecordMetadata(
            document_id=rid,
            page_number=1,
            pdf_name=f"{rid}.pdf",
            text=text,
        ),
    )


@pytest.fixture
def walton_corpus():
    return [
        _make_record("a", "Sam Walton founded Walmart"),
        _make_record("b", "Sam Walton Sam Walton retail retail"),
        _make_record("c", "The retail industry has many players"),
    ]


# ── Text helpers ──────────────────────────────────────────────────────────────

def test_normalize_text_strips_punctuation_and_whitespace():
    assert normalize_text("  Hello,\tWORLD!!  It's   me. ") == "hello world it s me"


def test_tokenize_empty_for_punctuation_only():
    assert tokenize("?!... ---") == []


def test_extract_key_terms_strips_question_wrapper():
    assert extract_key_terms("Who is Sam Walton?") == "Sam Walton"
    assert extract_key_terms("what are enzymes??") == "enzymes"
    assert extract_key_terms("Sam Walton") == "Sam Walton"


def test_term_similarity_tolerates_common_typos():
    assert term_similarity("wolton", "walton") >= 0.7
    assert term_similarity("walton", "walton") == 1.0


def test_term_similarity_short_terms_must_match_exactly():
    assert term_similarity("ab", "ac") == 0.0


# ── KeywordScorer ─────────────────────────────────────────────────────────────

def test_exact_query_ranks_mentions_above_unrelated(walton_corpus):
    results = KeywordScorer().score("Sam Walton", walton_corpus)

    ids = [r.record_id for r in results]
    assert set(ids) == {"a", "b"}
    assert all(r.exact_match_score == 1.0 for r in results)


def test_repeated_terms_saturate(walton_corpus):
    results = {r.record_id: r for r in KeywordScorer().score("Sam Walton", walton_corpus)}

    # B says "Sam Walton" twice; term frequency saturates, so B must not
    # score anywhere near double A's single mention.
    assert results["b"].keyword_score > results["a"].keyword_score
    assert results["b"].keyword_score < 1.5 * results["a"].keyword_score


def test_misspelled_query_never_exact(walton_corpus):
    results = KeywordScorer().score("Som Wolton", walton_corpus)

    assert all(r.exact_match_score < 1.0 for r in results)
    assert "c" not in {r.record_id for r in results}


def test_misspelled_query_without_fuzzy_matching_is_empty(walton_corpus):
    scorer = KeywordScorer(fuzzy_threshold=1.01)
    assert scorer.score("Som Wolton", walton_corpus) == []


def test_partial_match_scores_fraction_of_terms(walton_corpus):
    results = {r.record_id: r for r in KeywordScorer().score("walton retail", walton_corpus)}

    assert results["b"].exact_match_score == 1.0   # contiguous phrase
    assert results["a"].exact_match_score == pytest.approx(0.5)
    assert results["c"].exact_match_score == pytest.approx(0.5)


def test_sorted_by_exact_then_score(walton_corpus):
    results = KeywordScorer().score("walton retail", walton_corpus)

    assert results[0].record_id == "b"
    keys = [(r.exact_match_score, r.keyword_score) for r in results]
    assert keys == sorted(keys, reverse=True)


def test_punctuation_query_returns_empty(walton_corpus):
    assert KeywordScorer().score("?!?", walton_corpus) == []


def test_empty_corpus_returns_empty():
    assert KeywordScorer().score("anything", []) == []


def test_top_k_limits_results(walton_corpus):
    assert len(KeywordScorer().score("retail walton", walton_corpus, top_k=1)) == 1


def test_case_and_punctuation_insensitive():
    records = [_make_record("x", "GOX-110: dosage is 5-40 ppm.")]

    results = KeywordScorer().score("gox 110 dosage", records)

    assert results[0].exact_match_score == 1.0


def test_repeated_query_word_is_not_an_exact_phrase():
    records = [
        _make_record("a", "new york city is large"),
        _make_record("b", "nothing here at all"),
    ]

    results = KeywordScorer().score("new york new", records)

    assert [r.record_id for r in results] == ["a"]
    # both distinct words are present, but only two of the three query words
    assert results[0].exact_match_score == pytest.approx(2 / 3)

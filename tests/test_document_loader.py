# tests/test_document_loader.py

import pytest

from pdfrag.infrastructure.document_loader import PageLoader, TextChunker
from pdfrag.infrastructure.file_hasher import compute_directory_hashes, compute_file_hash


def test_chunker_groups_sentences_under_limit():
    chunks = TextChunker(max_chunk_chars=20).split("First sentence. Second sentence.")

    assert [c.text for c in chunks] == ["First sentence.", "Second sentence."]


def test_chunker_keeps_short_page_whole():
    chunks = TextChunker().split("First sentence. Second sentence.")

    assert len(chunks) == 1
    assert chunks[0].sentences == ["First sentence.", "Second sentence."]


def test_chunker_never_cuts_long_sentence():
    sentence = "A very long sentence without any break in it at all."
    chunks = TextChunker(max_chunk_chars=10).split(sentence)

    assert [c.text for c in chunks] == [sentence]


def test_chunker_blank_text():
    assert TextChunker().split("  \n ") == []


def test_chunker_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        TextChunker(max_chunk_chars=0)


def test_split_pages_keeps_positional_numbers():
    pages = PageLoader().split_pages("page one\f\fpage three")

    assert [(p.page_number, p.text) for p in pages] == [(1, "page one"), (3, "page three")]


def test_split_pages_drops_control_characters():
    pages = PageLoader().split_pages("Café\x00 ünïcode")
    assert pages[0].text == "Café ünïcode"


def test_load_file_reads_text_exports(tmp_path):
    export = tmp_path / "walton.txt"
    export.write_text("Sam Walton\fWalmart", encoding="utf-8")

    pages = PageLoader().load_file(export)

    assert [p.page_number for p in pages] == [1, 2]


def test_load_file_ignores_unsupported(tmp_path):
    other = tmp_path / "scan.pdf"
    other.write_bytes(b"%PDF-1.4")
    assert PageLoader().load_file(other) == []


def test_directory_hashes_only_cover_exports(tmp_path):
    (tmp_path / "a.txt").write_text("same", encoding="utf-8")
    (tmp_path / "b.md").write_text("same", encoding="utf-8")
    (tmp_path / "c.pdf").write_bytes(b"ignored")

    hashes = compute_directory_hashes(str(tmp_path))

    assert set(hashes) == {"a.txt", "b.md"}
    assert hashes["a.txt"] == hashes["b.md"] == compute_file_hash(str(tmp_path / "a.txt"))

# pdfrag/infrastructure/document_loader.py

import re
from pathlib import Path
from typing import List

from pdfrag.config import MAX_CHUNK_CHARS
from pdfrag.domain.models import Chunk, PageText


# Text exports produced by the PDF extraction step (e.g. `pdftotext`), one
# form feed between pages.
SUPPORTED_EXTENSIONS = {".txt", ".md"}
PAGE_SEPARATOR = "\f"

# Split after terminal punctuation, only when the next word looks like the
# start of a sentence ("Dr. Smith" style abbreviations mostly survive).
SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+(?=[A-Z][a-z])")


class TextChunker:
    """
    Groups the sentences of one page into chunks of at most `max_chunk_chars`.

    A chunk is roughly one PDF page worth of text; a sentence longer than the
    limit is never cut and becomes a chunk of its own.
    """

    def __init__(self, max_chunk_chars: int = MAX_CHUNK_CHARS):
        if max_chunk_chars <= 0:
            raise ValueError("max_chunk_chars must be positive.")
        self._max_chunk_chars = max_chunk_chars

    def split(self, text: str) -> List[Chunk]:
        if not text or not text.strip():
            return []

        sentences = [
            s.strip()
            for s in SENTENCE_BOUNDARY.split(self._clean_text(text))
            if s.strip()
        ]

        chunks: List[Chunk] = []
        current: List[str] = []
        current_length = 0

        for sentence in sentences:
            if current and current_length + len(sentence) + 1 > self._max_chunk_chars:
                chunks.append(Chunk(text=" ".join(current), sentences=current))
                current, current_length = [], 0

            if current:
                current_length += 1
            current.append(sentence)
            current_length += len(sentence)

        if current:
            chunks.append(Chunk(text=" ".join(current), sentences=current))

        return chunks

    @staticmethod
    def _clean_text(text: str) -> str:
        text = re.sub(r"\s+", " ", text)
        text = re.sub(r"\.\s+", ". ", text)
        text = re.sub(r"\s+\.", ".", text)
        return text.strip()


class PageLoader:
    """
    Reads page-separated text exports into PageText values.

    Page numbers follow the position of the page in the file (1-based), so a
    blank page is skipped without shifting the numbers of the pages after it.
    """

    def load_file(self, file_path: Path) -> List[PageText]:
        file_path = Path(file_path)
        if file_path.suffix.lower() not in SUPPORTED_EXTENSIONS:
            return []

        raw = file_path.read_text(encoding="utf-8", errors="ignore")
        return self.split_pages(raw)

    def split_pages(self, raw: str) -> List[PageText]:
        pages = []
        for index, page_text in enumerate(raw.split(PAGE_SEPARATOR), start=1):
            cleaned = self._clean_text(page_text)
            if cleaned:
                pages.append(PageText(page_number=index, text=cleaned))
        return pages

    @staticmethod
    def _clean_text(text: str) -> str:
        """Normalize whitespace and drop control characters."""
        text = re.sub(r"[\x00-\x08\x0b-\x1f\x7f]", " ", text)
        text = re.sub(r"[ \t]{2,}", " ", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()

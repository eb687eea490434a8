# pdfrag/domain/models.py

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class RecordMetadata:
    """
    Metadata attached to every stored passage.
    The fixed fields are required; anything else goes into `extra`.
    """
    document_id: str
    page_number: int
    pdf_name: str
    text: str
    timestamp: float = field(default_factory=time.time)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VectorRecord:
    """A stored (id, embedding, metadata) triple. Immutable once stored."""
    record_id: str
    embedding: List[float] = field(repr=False)
    metadata: RecordMetadata

    @property
    def text(self) -> str:
        return self.metadata.text


@dataclass(frozen=True)
class DocumentInfo:
    """One entry of the document registry; names are unique across documents."""
    document_id: str
    name: str
    page_count: int = 0
    created_at: float = field(default_factory=time.time)
    embedding_model: str = ""


@dataclass
class ScoredResult:
    """
    A passage scored for a single query. Built fresh per query, never stored.

    Which score fields are set depends on the signal(s) that found it:
    semantic search sets `similarity`, keyword search sets `keyword_score`
    and `exact_match_score`, fusion sets `final_score`.
    """
    record_id: str
    metadata: RecordMetadata
    similarity: Optional[float] = None
    keyword_score: Optional[float] = None
    exact_match_score: Optional[float] = None
    final_score: float = 0.0

    @property
    def text(self) -> str:
        return self.metadata.text

    def __repr__(self) -> str:
        preview = self.metadata.text[:80].replace("\n", " ")
        return (
            f"ScoredResult(score={self.final_score:.4f}, "
            f"source='{self.metadata.pdf_name}', "
            f"page={self.metadata.page_number}, "
            f"preview='{preview}...')"
        )


@dataclass(frozen=True)
class PageText:
    """Raw text of one document page, as supplied by an external extractor."""
    page_number: int
    text: str


@dataclass(frozen=True)
class Chunk:
    text: str
    sentences: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContextPassage:
    """Shape handed to prompt construction by the chat flow."""
    text: str
    page: int
    score: float
    file_name: str


@dataclass
class IngestionReport:
    document_id: str
    pdf_name: str
    pages_indexed: int = 0
    pages_skipped: int = 0
    chunks_stored: int = 0

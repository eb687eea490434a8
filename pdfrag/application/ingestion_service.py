# pdfrag/application/ingestion_service.py

import time
from typing import List, Optional

from pdfrag.domain.interfaces import EmbeddingPort, RecordStorePort
from pdfrag.domain.models import (
    DocumentInfo,
    IngestionReport,
    PageText,
    RecordMetadata,
    VectorRecord,
)
from pdfrag.infrastructure.document_loader import TextChunker


def make_record_id(document_id: str, page_number: int, chunk_index: int) -> str:
    """Deterministic ids make re-running a page an overwrite, not a duplicate."""
    return f"{document_id}-{page_number}-{chunk_index}"


class IngestionService:
    """
    Turns extracted page text into stored, embedded passages.

    Each page is chunked, embedded and written as one batch. A failure on
    page N propagates to the caller with pages 1..N-1 already stored, and
    since ids are deterministic the caller can simply run the document again.
    """

    def __init__(
        self,
        embedding_engine: EmbeddingPort,
        vector_store: RecordStorePort,
        chunker: Optional[TextChunker] = None,
        model_name: str = "",
    ):
        self._embedding_engine = embedding_engine
        self._vector_store = vector_store
        self._chunker = chunker or TextChunker()
        self._model_name = model_name

    def index_document(
        self,
        document_id: str,
        pdf_name: str,
        pages: List[PageText],
        skip_existing: bool = True,
    ) -> IngestionReport:
        if not document_id or not pdf_name:
            raise ValueError("document_id and pdf_name are required.")

        existing = self._vector_store.get_document(pdf_name)
        self._vector_store.register_document(DocumentInfo(
            document_id     = document_id,
            name            = pdf_name,
            page_count      = len(pages),
            created_at      = existing.created_at if existing else time.time(),
            embedding_model = self._model_name,
        ))

        report = IngestionReport(document_id=document_id, pdf_name=pdf_name)

        for page in sorted(pages, key=lambda p: p.page_number):
            if page.page_number < 1:
                raise ValueError(f"Page numbers are 1-based, got {page.page_number}.")

            if skip_existing and self._vector_store.page_exists(pdf_name, page.page_number):
                report.pages_skipped += 1
                continue

            chunks = self._chunker.split(page.text)
            if not chunks:
                report.pages_skipped += 1
                continue

            embeddings = self._embedding_engine.encode([chunk.text for chunk in chunks])

            records = [
                VectorRecord(
                    record_id = make_record_id(document_id, page.page_number, index),
                    embedding = embedding,
                    metadata  = RecordMetadata(
                        document_id = document_id,
                        page_number = page.page_number,
                        pdf_name    = pdf_name,
                        text        = chunk.text,
                        extra       = {
                            "chunk_index":  index,
                            "total_chunks": len(chunks),
                        },
                    ),
                )
                for index, (chunk, embedding) in enumerate(zip(chunks, embeddings))
            ]
            self._vector_store.put_many(records)

            report.pages_indexed += 1
            report.chunks_stored += len(records)

        print(
            f"[Ingestion] '{pdf_name}': {report.pages_indexed} pages indexed, "
            f"{report.pages_skipped} skipped, {report.chunks_stored} chunks stored."
        )
        return report

    def is_current(self, document_id: str, pdf_name: str) -> bool:
        """True when `pdf_name` is stored with this id and this embedding model."""
        info = self._vector_store.get_document(pdf_name)
        return (
            info is not None
            and info.document_id == document_id
            and info.embedding_model == self._model_name
        )

    def refresh_document(
        self,
        document_id: str,
        pdf_name: str,
        pages: List[PageText],
    ) -> Optional[IngestionReport]:
        """
        Index `pdf_name` unless it is already stored with the same id and model.

        A changed id (new file content) or a different embedding model means
        the stored passages are stale: they are removed and the document is
        indexed from scratch. Returns None when nothing had to be done.
        """
        if self.is_current(document_id, pdf_name):
            return None

        stored = self._vector_store.get_document(pdf_name)
        if stored is not None or self._vector_store.document_exists(pdf_name):
            print(f"[Ingestion] '{pdf_name}' changed since last indexing. Reindexing...")
            self.remove_document(pdf_name)

        return self.index_document(document_id, pdf_name, pages)

    def drop_stale_documents(self) -> List[str]:
        """Remove every document embedded with a model other than the current one."""
        stale = []
        for pdf_name in self._vector_store.list_documents():
            info = self._vector_store.get_document(pdf_name)
            if info is not None and info.embedding_model != self._model_name:
                stale.append(pdf_name)

        for pdf_name in stale:
            print(f"[Ingestion] '{pdf_name}' was embedded with another model. Dropping it.")
            self.remove_document(pdf_name)
        return stale

    def remove_document(self, pdf_name: str) -> int:
        removed = self._vector_store.delete_by_document(pdf_name)
        print(f"[Ingestion] Removed '{pdf_name}' ({removed} chunks).")
        return removed

    def reset(self) -> None:
        """Wipe every stored passage and registered document."""
        self._vector_store.clear()
        print("[Ingestion] Store reset.")

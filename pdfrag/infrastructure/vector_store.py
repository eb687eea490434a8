# pdfrag/infrastructure/vector_store.py

import threading
import uuid
from typing import Dict, List, Optional, Sequence

from pdfrag.domain.errors import DocumentConflictError, StorageError
from pdfrag.domain.interfaces import RecordStorePort
from pdfrag.domain.models import DocumentInfo, RecordMetadata, VectorRecord


class InMemoryRecordStore(RecordStorePort):
    """
    Ephemeral record store backed by plain dicts.

    Used by tests and throwaway sessions. Records keep insertion order, which
    is also the order `get_all()` returns them in. A closed store raises
    StorageError on every call, like a backend that has gone away.
    """

    def __init__(self, dimension: int = 768):
        super().__init__(dimension)
        self._records: Dict[str, VectorRecord] = {}
        self._documents: Dict[str, DocumentInfo] = {}
        self._lock = threading.RLock()
        self._closed = False

    # ─── Writes ──────────────────────────────────────────────────────────────

    def put(
        self,
        record_id: Optional[str],
        embedding: Sequence[float],
        metadata: RecordMetadata,
    ) -> str:
        record_id = str(record_id) if record_id is not None else uuid.uuid4().hex
        record = VectorRecord(record_id, self._coerce_embedding(embedding), metadata)
        with self._lock:
            self._ensure_open()
            self._records[record_id] = record
        return record_id

    def put_many(self, records: List[VectorRecord]) -> None:
        # Validate the whole batch before touching the dict: all or nothing.
        prepared = [
            VectorRecord(str(r.record_id), self._coerce_embedding(r.embedding), r.metadata)
            for r in records
        ]
        with self._lock:
            self._ensure_open()
            for record in prepared:
                self._records[record.record_id] = record

    def delete(self, record_id: str) -> bool:
        with self._lock:
            self._ensure_open()
            return self._records.pop(str(record_id), None) is not None

    def delete_by_document(self, pdf_name: str) -> int:
        with self._lock:
            self._ensure_open()
            doomed = [
                rid for rid, record in self._records.items()
                if record.metadata.pdf_name == pdf_name
            ]
            for rid in doomed:
                del self._records[rid]
            self._documents = {
                doc_id: info for doc_id, info in self._documents.items()
                if info.name != pdf_name
            }
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._ensure_open()
            self._records.clear()
            self._documents.clear()

    def register_document(self, info: DocumentInfo) -> None:
        with self._lock:
            self._ensure_open()
            for existing in self._documents.values():
                if existing.name == info.name and existing.document_id != info.document_id:
                    raise DocumentConflictError(info.name, existing.document_id)
            self._documents[info.document_id] = info

    # ─── Reads ───────────────────────────────────────────────────────────────

    def get(self, record_id: str) -> Optional[VectorRecord]:
        with self._lock:
            self._ensure_open()
            return self._records.get(str(record_id))

    def get_all(self) -> List[VectorRecord]:
        with self._lock:
            self._ensure_open()
            return list(self._records.values())

    def count(self) -> int:
        with self._lock:
            self._ensure_open()
            return len(self._records)

    def list_documents(self) -> List[str]:
        with self._lock:
            self._ensure_open()
            return sorted({r.metadata.pdf_name for r in self._records.values()})

    def document_exists(self, pdf_name: str) -> bool:
        with self._lock:
            self._ensure_open()
            return any(r.metadata.pdf_name == pdf_name for r in self._records.values())

    def page_exists(self, pdf_name: str, page_number: int) -> bool:
        with self._lock:
            self._ensure_open()
            return any(
                r.metadata.pdf_name == pdf_name and r.metadata.page_number == page_number
                for r in self._records.values()
            )

    def get_document(self, pdf_name: str) -> Optional[DocumentInfo]:
        with self._lock:
            self._ensure_open()
            for info in self._documents.values():
                if info.name == pdf_name:
                    return info
        return None

    def get_document_stats(self) -> List[dict]:
        """Aggregate current records by document."""
        counts = {}
        for record in self.get_all():
            name = record.metadata.pdf_name
            counts[name] = counts.get(name, 0) + 1
        return [{"pdf_name": name, "count": count} for name, count in sorted(counts.items())]

    # ─── Lifecycle ───────────────────────────────────────────────────────────

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise StorageError("In-memory store has been closed.")

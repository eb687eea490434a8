# pdfrag/infrastructure/chroma_store.py

import json
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

import chromadb
from chromadb.config import Settings

from pdfrag.domain.errors import DocumentConflictError, RetrievalError, StorageError
from pdfrag.domain.interfaces import RecordStorePort
from pdfrag.domain.models import DocumentInfo, RecordMetadata, VectorRecord


# ── Constants ─────────────────────────────────────────────────────────────────

VECTOR_COLLECTION   = "passage_vectors"
REGISTRY_COLLECTION = "document_registry"

# The registry holds no vectors of its own, but every Chroma row needs one.
REGISTRY_PLACEHOLDER_EMBEDDING = [1.0]


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    """Re-raise any backend failure as StorageError. Domain errors pass through."""
    try:
        yield
    except RetrievalError:
        raise
    except Exception as error:
        raise StorageError(f"ChromaDB failed to {action}: {error}") from error


class ChromaRecordStore(RecordStorePort):
    """
    Durable record store on an embedded ChromaDB database.

    ┌──────────────────────────────────────────────────────────────┐
    │  passage_vectors    id → embedding, text, document metadata  │
    │  document_registry  document_id → unique name, page count    │
    └──────────────────────────────────────────────────────────────┘

    `document_id`, `page_number` and `pdf_name` are stored as filterable
    metadata so per-document and per-page lookups never need a full scan.
    Free-form metadata (`RecordMetadata.extra`) is kept as a JSON string.

    All calls go through one re-entrant lock: a batch upsert or a document
    deletion is never visible half-done to a concurrent `get_all()`.
    """

    def __init__(self, persist_directory: str, dimension: int = 768):
        """
        Args:
            persist_directory: Path for ChromaDB on-disk storage.
            dimension:         Required length of every stored embedding.
        """
        super().__init__(dimension)
        self._persist_directory = persist_directory
        self._lock = threading.RLock()
        self._closed = False

        path = Path(persist_directory)
        if path.exists() and not path.is_dir():
            raise StorageError(
                f"Failed to initialize ChromaDB: path '{persist_directory}' is a file."
            )

        try:
            path.mkdir(parents=True, exist_ok=True)
            self._client = chromadb.PersistentClient(
                path=persist_directory,
                settings=Settings(anonymized_telemetry=False),
            )
            self._vectors = self._open_vector_collection()
            self._registry = self._client.get_or_create_collection(name=REGISTRY_COLLECTION)
        except Exception as error:
            raise StorageError(
                f"Failed to initialize ChromaDB at '{persist_directory}'.\n"
                f"The database may be locked by another process or corrupted.\n"
                f"Fix: close other running instances, or delete '{persist_directory}'.\n"
                f"Original error: {error}"
            ) from error

        print(
            f"[ChromaStore] Connected to '{persist_directory}'. "
            f"Collection has {self._vectors.count()} records."
        )

    # ─── Writes ──────────────────────────────────────────────────────────────

    def put(
        self,
        record_id: Optional[str],
        embedding: Sequence[float],
        metadata: RecordMetadata,
    ) -> str:
        record_id = str(record_id) if record_id is not None else uuid.uuid4().hex
        self.put_many([VectorRecord(record_id, list(embedding), metadata)])
        return record_id

    def put_many(self, records: List[VectorRecord]) -> None:
        """
        Upsert a batch in a single Chroma call.
        Dimensions are checked for the whole batch first, so a bad record
        leaves the store untouched.
        """
        if not records:
            return

        embeddings = [self._coerce_embedding(r.embedding) for r in records]

        with self._lock, _storage_errors("write records"):
            self._ensure_open()
            self._vectors.upsert(
                ids        = [str(r.record_id) for r in records],
                embeddings = embeddings,
                documents  = [r.metadata.text for r in records],
                metadatas  = [self._metadata_to_chroma(r.metadata) for r in records],
            )

    def delete(self, record_id: str) -> bool:
        with self._lock, _storage_errors("delete a record"):
            self._ensure_open()
            found = self._vectors.get(ids=[str(record_id)], include=[])
            if not found["ids"]:
                return False
            self._vectors.delete(ids=[str(record_id)])
            return True

    def delete_by_document(self, pdf_name: str) -> int:
        """
        Remove all records of a document and its registry entry.
        Zero matches is not an error.
        """
        with self._lock, _storage_errors(f"delete document '{pdf_name}'"):
            self._ensure_open()
            found = self._vectors.get(where={"pdf_name": pdf_name}, include=[])
            ids = found["ids"]
            if ids:
                self._vectors.delete(ids=ids)

            registered = self._registry.get(where={"name": pdf_name}, include=[])
            if registered["ids"]:
                self._registry.delete(ids=registered["ids"])

        print(f"[ChromaStore] Deleted document '{pdf_name}' ({len(ids)} records).")
        return len(ids)

    def clear(self) -> None:
        """Drop and recreate both collections."""
        with self._lock, _storage_errors("clear the store"):
            self._ensure_open()
            self._client.delete_collection(VECTOR_COLLECTION)
            self._client.delete_collection(REGISTRY_COLLECTION)
            self._vectors = self._open_vector_collection()
            self._registry = self._client.get_or_create_collection(name=REGISTRY_COLLECTION)
        print("[ChromaStore] Cleared all records and registered documents.")

    def register_document(self, info: DocumentInfo) -> None:
        with self._lock, _storage_errors("register a document"):
            self._ensure_open()
            existing = self._registry.get(where={"name": info.name}, include=[])
            for existing_id in existing["ids"]:
                if existing_id != info.document_id:
                    raise DocumentConflictError(info.name, existing_id)

            self._registry.upsert(
                ids        = [info.document_id],
                embeddings = [REGISTRY_PLACEHOLDER_EMBEDDING],
                metadatas  = [{
                    "name":            info.name,
                    "page_count":      info.page_count,
                    "created_at":      info.created_at,
                    "embedding_model": info.embedding_model,
                }],
            )

    # ─── Reads ───────────────────────────────────────────────────────────────

    def get(self, record_id: str) -> Optional[VectorRecord]:
        with self._lock, _storage_errors("read a record"):
            self._ensure_open()
            results = self._vectors.get(
                ids     = [str(record_id)],
                include = ["embeddings", "metadatas", "documents"],
            )
            records = self._map_to_records(results)
        return records[0] if records else None

    def get_all(self) -> List[VectorRecord]:
        with self._lock, _storage_errors("read records"):
            self._ensure_open()
            results = self._vectors.get(include=["embeddings", "metadatas", "documents"])
            return self._map_to_records(results)

    def count(self) -> int:
        with self._lock, _storage_errors("count records"):
            self._ensure_open()
            return self._vectors.count()

    def list_documents(self) -> List[str]:
        with self._lock, _storage_errors("list documents"):
            self._ensure_open()
            results = self._vectors.get(include=["metadatas"])
        return sorted({meta["pdf_name"] for meta in results["metadatas"]})

    def document_exists(self, pdf_name: str) -> bool:
        with self._lock, _storage_errors("look up a document"):
            self._ensure_open()
            results = self._vectors.get(where={"pdf_name": pdf_name}, limit=1, include=[])
            return len(results["ids"]) > 0

    def page_exists(self, pdf_name: str, page_number: int) -> bool:
        with self._lock, _storage_errors("look up a page"):
            self._ensure_open()
            results = self._vectors.get(
                where   = {"$and": [
                    {"pdf_name":    {"$eq": pdf_name}},
                    {"page_number": {"$eq": int(page_number)}},
                ]},
                limit   = 1,
                include = [],
            )
            return len(results["ids"]) > 0

    def get_document(self, pdf_name: str) -> Optional[DocumentInfo]:
        with self._lock, _storage_errors("read the document registry"):
            self._ensure_open()
            results = self._registry.get(where={"name": pdf_name}, include=["metadatas"])
        if not results["ids"]:
            return None
        meta = results["metadatas"][0]
        return DocumentInfo(
            document_id     = results["ids"][0],
            name            = meta["name"],
            page_count      = int(meta.get("page_count", 0)),
            created_at      = float(meta.get("created_at", 0.0)),
            embedding_model = meta.get("embedding_model", ""),
        )

    def get_document_stats(self) -> List[dict]:
        """
        Fetch all metadatas from the store and aggregate counts by document.
        """
        with self._lock, _storage_errors("read document stats"):
            self._ensure_open()
            results = self._vectors.get(include=["metadatas"])

        counts = {}
        for meta in results["metadatas"]:
            name = meta.get("pdf_name", "unknown")
            counts[name] = counts.get(name, 0) + 1

        return [
            {"pdf_name": name, "count": count}
            for name, count in sorted(counts.items())
        ]

    # ─── Lifecycle ───────────────────────────────────────────────────────────

    def close(self) -> None:
        with self._lock:
            self._closed = True
        print(f"[ChromaStore] Closed '{self._persist_directory}'.")

    def _ensure_open(self) -> None:
        if self._closed:
            raise StorageError(f"ChromaDB store at '{self._persist_directory}' is closed.")

    # ─── Private: Chroma Helpers ─────────────────────────────────────────────

    def _open_vector_collection(self):
        return self._client.get_or_create_collection(
            name=VECTOR_COLLECTION,
            metadata={"hnsw:space": "cosine"},
        )

    @staticmethod
    def _metadata_to_chroma(metadata: RecordMetadata) -> dict:
        return {
            "document_id": metadata.document_id,
            "page_number": int(metadata.page_number),
            "pdf_name":    metadata.pdf_name,
            "timestamp":   float(metadata.timestamp),
            "extra":       json.dumps(metadata.extra, default=str),
        }

    @staticmethod
    def _map_to_records(chroma_results) -> List[VectorRecord]:
        """Rebuild domain records from a Chroma `get()` result."""
        embeddings = chroma_results["embeddings"]
        if embeddings is None:
            embeddings = [[] for _ in chroma_results["ids"]]

        records = []
        for rid, text, meta, embedding in zip(
            chroma_results["ids"],
            chroma_results["documents"],
            chroma_results["metadatas"],
            embeddings,
        ):
            records.append(VectorRecord(
                record_id = rid,
                embedding = [float(value) for value in embedding],
                metadata  = RecordMetadata(
                    document_id = meta.get("document_id", ""),
                    page_number = int(meta.get("page_number", 1)),
                    pdf_name    = meta.get("pdf_name", "unknown"),
                    text        = text or "",
                    timestamp   = float(meta.get("timestamp", 0.0)),
                    extra       = json.loads(meta.get("extra") or "{}"),
                ),
            ))
        return records

# pdfrag/domain/interfaces.py

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
import numpy as np

from .errors import DimensionMismatchError
from .models import DocumentInfo, RecordMetadata, VectorRecord


class EmbeddingPort(ABC):
    """
    Port for any embedding engine.
    Intentionally minimal: no infrastructure concerns like model naming.
    """

    @abstractmethod
    def encode(self, texts: List[str]) -> np.ndarray: ...

    @abstractmethod
    def encode_single(self, text: str) -> np.ndarray: ...


class RecordStorePort(ABC):
    """
    Keyed store of VectorRecords plus a registry of known documents.

    Every embedding written through the store must have exactly `dimension`
    values. Writes are atomic per call: `put_many` either stores the whole
    batch or nothing, and no reader ever sees half of a batch or half of a
    document deletion.
    """

    def __init__(self, dimension: int):
        if dimension <= 0:
            raise ValueError("Store dimension must be a positive integer.")
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    @abstractmethod
    def put(
        self,
        record_id: Optional[str],
        embedding: Sequence[float],
        metadata: RecordMetadata,
    ) -> str:
        """Insert or overwrite one record. Returns the (possibly generated) id."""
        ...

    @abstractmethod
    def put_many(self, records: List[VectorRecord]) -> None: ...

    @abstractmethod
    def get(self, record_id: str) -> Optional[VectorRecord]: ...

    @abstractmethod
    def get_all(self) -> List[VectorRecord]: ...

    @abstractmethod
    def count(self) -> int: ...

    @abstractmethod
    def delete(self, record_id: str) -> bool: ...

    @abstractmethod
    def list_documents(self) -> List[str]: ...

    @abstractmethod
    def delete_by_document(self, pdf_name: str) -> int:
        """Remove every record of `pdf_name`. Returns how many were removed."""
        ...

    @abstractmethod
    def clear(self) -> None: ...

    @abstractmethod
    def document_exists(self, pdf_name: str) -> bool: ...

    @abstractmethod
    def page_exists(self, pdf_name: str, page_number: int) -> bool: ...

    @abstractmethod
    def register_document(self, info: DocumentInfo) -> None:
        """
        Add or refresh a registry entry.
        Raises DocumentConflictError if the name belongs to another document id.
        """
        ...

    @abstractmethod
    def get_document(self, pdf_name: str) -> Optional[DocumentInfo]: ...

    @abstractmethod
    def get_document_stats(self) -> List[dict]:
        """Return indexed documents with their record counts."""
        ...

    def close(self) -> None:
        """Release backend resources. Optional for adapters that hold none."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ─── Shared validation ───────────────────────────────────────────────────

    def _coerce_embedding(self, embedding: Sequence[float]) -> List[float]:
        """Copy an embedding into a plain float list, enforcing dimensionality."""
        array = np.asarray(embedding, dtype=np.float64)
        if array.ndim != 1:
            raise DimensionMismatchError(self._dimension, int(array.size))
        if array.shape[0] != self._dimension:
            raise DimensionMismatchError(self._dimension, int(array.shape[0]))
        return [float(value) for value in array]

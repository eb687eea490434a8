# pdfrag/domain/errors.py


class RetrievalError(Exception):
    """Base class for every error raised by the retrieval core."""


class StorageError(RetrievalError):
    """
    The backing persistence layer failed to open, read or write.
    Never retried internally; the caller decides whether to redo the work.
    """


class DimensionMismatchError(RetrievalError):
    """An embedding's length differs from the store's fixed dimensionality."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding has {actual} dimensions, store expects {expected}."
        )


class DocumentConflictError(RetrievalError):
    """A document name is already registered under a different document id."""

    def __init__(self, name: str, existing_document_id: str):
        self.name = name
        self.existing_document_id = existing_document_id
        super().__init__(
            f"Document name '{name}' already belongs to document "
            f"'{existing_document_id}'."
        )

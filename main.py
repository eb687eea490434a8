# main.py

import sys
from pathlib import Path

from pdfrag.application.hybrid_ranker import HybridRanker
from pdfrag.application.ingestion_service import IngestionService
from pdfrag.application.search_service import RetrievalService
from pdfrag.config import (
    DATA_DIRECTORY,
    DEFAULT_TOP_K,
    KEYWORD_WEIGHT,
    PERSIST_DIRECTORY,
    SEMANTIC_WEIGHT,
)
from pdfrag.domain.errors import RetrievalError, StorageError
from pdfrag.infrastructure.chroma_store import ChromaRecordStore
from pdfrag.infrastructure.document_loader import PageLoader
from pdfrag.infrastructure.embedding_engine import SentenceTransformerEngine
from pdfrag.infrastructure.file_hasher import compute_directory_hashes
from pdfrag.interface.cli import (
    display_welcome_banner,
    display_indexing_status,
    display_ingestion_report,
    display_documents,
    prompt_for_query,
    display_results,
    display_error,
    ask_continue,
)


def main() -> None:
    display_welcome_banner()

    # ── 1. Initialize infrastructure ─────────────────────────────────────────
    embedding_engine = SentenceTransformerEngine()

    try:
        vector_store = ChromaRecordStore(
            persist_directory=PERSIST_DIRECTORY,
            dimension=embedding_engine.dimension,
        )
    except StorageError as error:
        display_error(str(error))
        sys.exit(1)

    with vector_store:
        ingestion_service = IngestionService(
            embedding_engine,
            vector_store,
            model_name=embedding_engine.model_name,
        )
        retrieval_service = RetrievalService(
            embedding_engine=embedding_engine,
            vector_store=vector_store,
            ranker=HybridRanker(
                vector_store,
                keyword_weight=KEYWORD_WEIGHT,
                semantic_weight=SEMANTIC_WEIGHT,
            ),
            top_k=DEFAULT_TOP_K,
        )

        # ── 2. Index new or modified documents ───────────────────────────────
        try:
            ingestion_service.drop_stale_documents()
            _index_documents(ingestion_service)
        except RetrievalError as error:
            display_error(f"Indexing failed: {error}")
            sys.exit(1)

        display_indexing_status(vector_store.count(), vector_store.list_documents())
        display_documents(vector_store.get_document_stats())

        # ── 3. Interactive search loop ───────────────────────────────────────
        while True:
            query = prompt_for_query()
            try:
                results = retrieval_service.search(query)
                display_results(query, results)
            except ValueError as error:
                display_error(str(error))
            except RetrievalError as error:
                display_error(f"Search failed: {error}")

            if not ask_continue():
                break


def _index_documents(service: IngestionService) -> None:
    """
    Embed every page export in the data directory that is new or has changed.
    The file hash is the document id, so modified content shows up as an id
    mismatch and the document is reindexed.
    """
    data_dir = Path(DATA_DIRECTORY)
    if not data_dir.exists():
        print(f"[Main] Data directory '{DATA_DIRECTORY}' not found — nothing to index.")
        return

    loader = PageLoader()

    for filename, file_hash in compute_directory_hashes(DATA_DIRECTORY).items():
        pdf_name = Path(filename).stem
        if service.is_current(file_hash, pdf_name):
            print(f"[Main] '{pdf_name}' is up to date — skipping. ✓")
            continue

        pages = loader.load_file(next(data_dir.rglob(filename)))
        if not pages:
            print(f"[Main] ⚠ '{filename}' has no text — skipping.")
            continue

        report = service.refresh_document(file_hash, pdf_name, pages)
        if report is not None:
            display_ingestion_report(report)


if __name__ == "__main__":
    main()

# api.py

import sys

import uvicorn

from pdfrag.application.hybrid_ranker import HybridRanker
from pdfrag.application.ingestion_service import IngestionService
from pdfrag.application.search_service import RetrievalService
from pdfrag.config import (
    DEFAULT_TOP_K,
    KEYWORD_WEIGHT,
    PERSIST_DIRECTORY,
    SEMANTIC_WEIGHT,
)
from pdfrag.domain.errors import StorageError
from pdfrag.infrastructure.chroma_store import ChromaRecordStore
from pdfrag.infrastructure.embedding_engine import SentenceTransformerEngine
from pdfrag.interface.api import create_app


# ── Composition root ─────────────────────────────────────────────────────────
embedding_engine = SentenceTransformerEngine()

try:
    vector_store = ChromaRecordStore(
        persist_directory=PERSIST_DIRECTORY,
        dimension=embedding_engine.dimension,
    )
except StorageError as error:
    print(f"[API] {error}")
    sys.exit(1)

ranker = HybridRanker(
    vector_store,
    keyword_weight=KEYWORD_WEIGHT,
    semantic_weight=SEMANTIC_WEIGHT,
)
retrieval_service = RetrievalService(
    embedding_engine=embedding_engine,
    vector_store=vector_store,
    ranker=ranker,
    top_k=DEFAULT_TOP_K,
)
ingestion_service = IngestionService(
    embedding_engine=embedding_engine,
    vector_store=vector_store,
    model_name=embedding_engine.model_name,
)

# Passages embedded by a previous model are not comparable with new queries
stale_documents = ingestion_service.drop_stale_documents()
if stale_documents:
    print(f"[API] Dropped {len(stale_documents)} documents embedded with another model. Re-upload them.")

app = create_app(retrieval_service, ingestion_service, vector_store)

if vector_store.count() > 0:
    print(f"[API] Persistent index detected: {len(vector_store.list_documents())} documents.")
else:
    print("[API] Index is empty. POST pages to /documents or run main.py to index a data directory.")


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)

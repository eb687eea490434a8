# pdfrag/interface/api.py

from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from pdfrag.application.ingestion_service import IngestionService
from pdfrag.application.search_service import RetrievalService
from pdfrag.config import DEFAULT_TOP_K
from pdfrag.domain.errors import (
    DimensionMismatchError,
    DocumentConflictError,
    RetrievalError,
    StorageError,
)
from pdfrag.domain.interfaces import RecordStorePort
from pdfrag.domain.models import PageText, ScoredResult


# ── API Models ───────────────────────────────────────────────────────────────
class SearchRequest(BaseModel):
    query: str
    top_k: Optional[int] = Field(default=DEFAULT_TOP_K, ge=1, le=100)


class SimilarRequest(BaseModel):
    text: str
    document_id: Optional[str] = None
    top_k: Optional[int] = Field(default=DEFAULT_TOP_K, ge=1, le=100)


class ChatContextRequest(BaseModel):
    question: str
    top_k: Optional[int] = Field(default=3, ge=1, le=100)


class PageSchema(BaseModel):
    page_number: int = Field(ge=1)
    text: str


class IndexDocumentRequest(BaseModel):
    document_id: str
    pdf_name: str
    pages: List[PageSchema]


class ResultSchema(BaseModel):
    id: str
    document_id: str
    pdf_name: str
    page_number: int
    text: str
    score: float
    similarity: Optional[float] = None
    keyword_score: Optional[float] = None
    exact_match_score: Optional[float] = None


class SearchResponse(BaseModel):
    query: str
    results: List[ResultSchema]


class ContextPassageSchema(BaseModel):
    text: str
    page: int
    score: float
    file_name: str


class ChatContextResponse(BaseModel):
    question: str
    context: List[ContextPassageSchema]


def _to_schema(result: ScoredResult) -> ResultSchema:
    return ResultSchema(
        id                = result.record_id,
        document_id       = result.metadata.document_id,
        pdf_name          = result.metadata.pdf_name,
        page_number       = result.metadata.page_number,
        text              = result.text,
        score             = round(float(result.final_score), 4),
        similarity        = result.similarity,
        keyword_score     = result.keyword_score,
        exact_match_score = result.exact_match_score,
    )


def _raise_http(error: Exception, action: str) -> None:
    """Map core errors to HTTP statuses. Failures never look like empty results."""
    if isinstance(error, DocumentConflictError):
        raise HTTPException(status_code=409, detail=str(error)) from error
    if isinstance(error, DimensionMismatchError):
        raise HTTPException(status_code=422, detail=str(error)) from error
    if isinstance(error, StorageError):
        print(f"[API] {action} failed: {error}")
        raise HTTPException(status_code=503, detail=f"{action} failed: {error}") from error
    if isinstance(error, ValueError):
        raise HTTPException(status_code=400, detail=str(error)) from error
    raise error


# ── App Factory ──────────────────────────────────────────────────────────────
def create_app(
    retrieval: RetrievalService,
    ingestion: IngestionService,
    store: RecordStorePort,
    allowed_origins: Optional[List[str]] = None,
) -> FastAPI:
    app = FastAPI(
        title="pdfrag API",
        description="Hybrid keyword + semantic passage search over uploaded PDFs.",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/status")
    def get_status() -> Dict:
        """Record count and the documents currently indexed."""
        try:
            return {
                "records_indexed": store.count(),
                "documents":       store.list_documents(),
                "dimension":       store.dimension,
            }
        except RetrievalError as error:
            _raise_http(error, "Status check")

    @app.get("/documents")
    def get_documents() -> Dict:
        """Returns the list of indexed documents and their passage counts."""
        try:
            return {"documents": store.get_document_stats()}
        except RetrievalError as error:
            _raise_http(error, "Listing documents")

    @app.get("/documents/{pdf_name}/exists")
    def check_document(pdf_name: str) -> Dict:
        """Lets the uploader skip re-embedding a document it already processed."""
        try:
            exists = store.document_exists(pdf_name)
            info = store.get_document(pdf_name)
        except RetrievalError as error:
            _raise_http(error, "Document check")
        return {
            "exists":      exists,
            "pdf_name":    pdf_name,
            "document_id": info.document_id if info else None,
            "page_count":  info.page_count if info else 0,
            "created_at":  info.created_at if info else None,
        }

    @app.post("/documents")
    def index_document(request: IndexDocumentRequest) -> Dict:
        pages = [PageText(page_number=p.page_number, text=p.text) for p in request.pages]
        try:
            report = ingestion.index_document(request.document_id, request.pdf_name, pages)
        except (RetrievalError, ValueError) as error:
            _raise_http(error, "Indexing")
        return {
            "document_id":   report.document_id,
            "pdf_name":      report.pdf_name,
            "pages_indexed": report.pages_indexed,
            "pages_skipped": report.pages_skipped,
            "chunks_stored": report.chunks_stored,
        }

    @app.delete("/documents/{pdf_name}")
    def delete_document(pdf_name: str) -> Dict:
        try:
            deleted = ingestion.remove_document(pdf_name)
        except RetrievalError as error:
            _raise_http(error, "Deletion")
        return {"pdf_name": pdf_name, "deleted": deleted}

    @app.post("/admin/reset")
    def reset_index() -> Dict:
        try:
            ingestion.reset()
        except RetrievalError as error:
            _raise_http(error, "Reset")
        return {"message": "Index cleared."}

    @app.post("/search", response_model=SearchResponse)
    def search(request: SearchRequest) -> SearchResponse:
        try:
            results = retrieval.search(request.query, top_k=request.top_k)
        except (RetrievalError, ValueError) as error:
            _raise_http(error, "Search")
        return SearchResponse(query=request.query, results=[_to_schema(r) for r in results])

    @app.post("/similar", response_model=SearchResponse)
    def similar(request: SimilarRequest) -> SearchResponse:
        try:
            results = retrieval.find_similar_passages(
                request.text, document_id=request.document_id, top_k=request.top_k,
            )
        except (RetrievalError, ValueError) as error:
            _raise_http(error, "Similarity search")
        return SearchResponse(query=request.text, results=[_to_schema(r) for r in results])

    @app.post("/chat/context", response_model=ChatContextResponse)
    def chat_context(request: ChatContextRequest) -> ChatContextResponse:
        try:
            passages = retrieval.gather_context(request.question, top_k=request.top_k)
        except (RetrievalError, ValueError) as error:
            _raise_http(error, "Context retrieval")
        return ChatContextResponse(
            question=request.question,
            context=[
                ContextPassageSchema(
                    text=p.text, page=p.page, score=p.score, file_name=p.file_name,
                )
                for p in passages
            ],
        )

    return app

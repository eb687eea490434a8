# tests/test_api.py

import numpy as np
import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from pdfrag.application.ingestion_service import IngestionService
from pdfrag.application.search_service import RetrievalService
from pdfrag.infrastructure.vector_store import InMemoryRecordStore
from pdfrag.interface.api import create_app


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore(dimension=3)


@pytest.fixture
def client(store) -> TestClient:
    engine = MagicMock()
    engine.encode.side_effect = lambda texts: np.array([[1.0, 0.0, 0.0]] * len(texts))
    engine.encode_single.return_value = np.array([1.0, 0.0, 0.0])

    app = create_app(
        retrieval=RetrievalService(engine, store),
        ingestion=IngestionService(engine, store),
        store=store,
    )
    return TestClient(app)


def _index(client, document_id="doc-1", pdf_name="walton.pdf"):
    return client.post("/documents", json={
        "document_id": document_id,
        "pdf_name":    pdf_name,
        "pages": [
            {"page_number": 1, "text": "Sam Walton founded Walmart."},
            {"page_number": 2, "text": "The retail industry has many players."},
        ],
    })


def test_status_on_empty_index(client):
    response = client.get("/status")

    assert response.status_code == 200
    assert response.json() == {"records_indexed": 0, "documents": [], "dimension": 3}


def test_index_then_search(client):
    assert _index(client).json()["pages_indexed"] == 2

    response = client.post("/search", json={"query": "Who is Sam Walton?"})

    assert response.status_code == 200
    results = response.json()["results"]
    assert results[0]["pdf_name"] == "walton.pdf"
    assert results[0]["page_number"] == 1
    assert 0.0 < results[0]["score"] <= 1.0


def test_search_nothing_indexed_is_empty_200(client):
    response = client.post("/search", json={"query": "Sam Walton"})

    assert response.status_code == 200
    assert response.json()["results"] == []


def test_empty_query_is_400(client):
    assert client.post("/search", json={"query": "  "}).status_code == 400


def test_storage_failure_is_503_not_empty(client, store):
    store.close()

    response = client.post("/search", json={"query": "Sam Walton"})

    assert response.status_code == 503
    assert response.json()["detail"].startswith("Search failed")


def test_name_conflict_is_409(client):
    _index(client)
    assert _index(client, document_id="doc-2").status_code == 409


def test_document_exists_and_delete(client):
    _index(client)

    exists = client.get("/documents/walton.pdf/exists").json()
    assert exists["exists"] is True
    assert exists["document_id"] == "doc-1"
    assert exists["page_count"] == 2

    assert client.delete("/documents/walton.pdf").json()["deleted"] == 2
    assert client.get("/documents/walton.pdf/exists").json()["exists"] is False


def test_documents_lists_counts(client):
    _index(client)
    assert client.get("/documents").json() == {"documents": [{"pdf_name": "walton.pdf", "count": 2}]}


def test_similar_excludes_own_document(client):
    _index(client)
    _index(client, document_id="doc-2", pdf_name="copy.pdf")

    response = client.post("/similar", json={"text": "Walmart history", "document_id": "doc-1"})

    assert response.status_code == 200
    assert {r["document_id"] for r in response.json()["results"]} == {"doc-2"}


def test_chat_context(client):
    _index(client)

    response = client.post("/chat/context", json={"question": "What is Walmart?"})

    context = response.json()["context"]
    assert len(context) <= 3
    assert context[0]["file_name"] == "walton.pdf"
    assert context[0]["page"] == 1


def test_reset(client, store):
    _index(client)
    assert client.post("/admin/reset").status_code == 200
    assert store.count() == 0

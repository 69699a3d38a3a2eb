"""
Tests for the FastAPI application
"""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock

from api.main import create_app
from core.config import RAGConfig
from core.factory import create_components
from data_pipeline.ingestion.web_loader import LoadResult


class FakeLoader:
    def __init__(self, documents):
        self.documents = documents

    async def load_many(self, urls):
        return LoadResult(documents=list(self.documents))


@pytest.fixture
def components(embedder, memory_store, compressor, sample_documents):
    return create_components(
        RAGConfig(vector_store_backend="memory", llm_api_key="unused"),
        embedder=embedder,
        vector_store=memory_store,
        compressor=compressor,
        loader=FakeLoader(sample_documents)
    )


@pytest.fixture
def client(components):
    with TestClient(create_app(components)) as test_client:
        yield test_client


def ingest(client):
    response = client.post("/api/v1/ingest", json={"urls": ["https://example.com/zebras"]})
    assert response.status_code == 200
    return response.json()


class TestQueryEndpoint:
    """Test POST /api/v1/query"""

    def test_query_after_ingest(self, client):
        ingest(client)

        response = client.post("/api/v1/query", json={"query": "zebra migration", "k_parents": 2})

        assert response.status_code == 200
        data = response.json()
        assert data["query"] == "zebra migration"
        assert data["status"] == "ok"
        assert len(data["passages"]) == 2
        assert data["passages"][0]["verdict"] == "full"
        assert set(data["timings"]) == {"total_ms", "retrieval_ms", "compression_ms"}

    def test_empty_index(self, client):
        response = client.post("/api/v1/query", json={"query": "zebra"})

        assert response.status_code == 200
        assert response.json()["status"] == "no_candidates"
        assert response.json()["passages"] == []

    @pytest.mark.parametrize("payload", [
        {"query": ""},
        {"query": "   "},
        {"query": "zebra", "k_parents": 0},
        {},
    ])
    def test_invalid_requests(self, client, payload):
        response = client.post("/api/v1/query", json=payload)

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_store_outage_returns_502(self, client, components):
        components.vector_store.similarity_search = AsyncMock(side_effect=ConnectionError("down"))

        response = client.post("/api/v1/query", json={"query": "zebra"})

        assert response.status_code == 502
        assert response.json()["error_code"] == "RETRIEVAL_ERROR"


class TestIngestEndpoint:
    """Test POST /api/v1/ingest"""

    def test_ingest_counts(self, client, memory_store):
        data = ingest(client)

        assert data["status"] == "success"
        assert data["documents_loaded"] == 2
        assert data["written"] == data["parent_chunks"] + data["child_chunks"]
        assert len(memory_store) == data["written"]

    def test_rejects_non_http_urls(self, client):
        response = client.post("/api/v1/ingest", json={"urls": ["file:///etc/passwd"]})

        assert response.status_code == 422

    def test_rejects_empty_url_list(self, client):
        response = client.post("/api/v1/ingest", json={"urls": []})

        assert response.status_code == 422


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"] == {"vector_store": "healthy", "embedder": "healthy"}

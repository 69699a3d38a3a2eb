"""
Tests for the command line interface
"""
import json

import pytest
from unittest.mock import AsyncMock
from click.testing import CliRunner

from cli.main import EXIT_CONFIGURATION, EXIT_FAILURE, main
from core.config import RAGConfig
from core.factory import create_components
from data_pipeline.ingestion.web_loader import LoadResult


class FakeLoader:
    def __init__(self, documents, failed_urls=None):
        self.documents = documents
        self.failed_urls = failed_urls or {}

    async def load_many(self, urls):
        return LoadResult(documents=list(self.documents), failed_urls=dict(self.failed_urls))


@pytest.fixture
def env_file(tmp_path, monkeypatch):
    monkeypatch.delenv("CEREBRAS_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("RAG_VECTOR_STORE", "memory")
    # Keep root handlers away from the runner's captured streams
    monkeypatch.setattr("cli.main.configure_logging", lambda level: None)
    path = tmp_path / ".env"
    path.write_text("")
    return str(path)


@pytest.fixture
def fake_components(monkeypatch, embedder, memory_store, compressor, sample_documents):
    """Patch the CLI to use in-memory collaborators"""
    def _install(loader=None):
        components = create_components(
            RAGConfig(vector_store_backend="memory", llm_api_key="unused"),
            embedder=embedder,
            vector_store=memory_store,
            compressor=compressor,
            loader=loader or FakeLoader(sample_documents)
        )
        monkeypatch.setattr("cli.main.create_components", lambda config: components)
        return components
    return _install


class TestCLI:
    """Test ingest and query commands"""

    def test_missing_api_key_exits_with_configuration_code(self, env_file):
        runner = CliRunner()

        result = runner.invoke(main, ["--env-file", env_file, "query", "zebra"])

        assert result.exit_code == EXIT_CONFIGURATION
        assert "CEREBRAS_API_KEY" in result.output

    def test_invalid_environment_exits_with_configuration_code(self, env_file, monkeypatch):
        monkeypatch.setenv("RAG_K_PARENTS", "0")
        runner = CliRunner()

        result = runner.invoke(main, ["--env-file", env_file, "query", "zebra"])

        assert result.exit_code == EXIT_CONFIGURATION

    def test_ingest_then_query(self, env_file, fake_components):
        fake_components()
        runner = CliRunner()

        ingested = runner.invoke(main, ["--env-file", env_file, "ingest", "https://example.com/zebras"])
        assert ingested.exit_code == 0
        assert json.loads(ingested.output)["status"] == "success"

        queried = runner.invoke(main, ["--env-file", env_file, "query", "zebra migration", "--json"])
        assert queried.exit_code == 0
        payload = json.loads(queried.output)
        assert payload["status"] == "ok"
        assert 1 <= len(payload["passages"]) <= 3

    def test_query_text_output(self, env_file, fake_components):
        fake_components()
        runner = CliRunner()
        runner.invoke(main, ["--env-file", env_file, "ingest", "https://example.com/zebras"])

        result = runner.invoke(main, ["--env-file", env_file, "query", "zebra migration", "--k-parents", "1"])

        assert result.exit_code == 0
        assert "Status: ok" in result.output
        assert "[1] https://example.com/" in result.output

    def test_ingest_with_every_url_failing(self, env_file, fake_components):
        fake_components(FakeLoader([], failed_urls={"https://example.com/down": "HTTP 503"}))
        runner = CliRunner()

        result = runner.invoke(main, ["--env-file", env_file, "ingest", "https://example.com/down"])

        assert result.exit_code == EXIT_FAILURE

    def test_store_outage_exits_with_failure(self, env_file, fake_components):
        components = fake_components()

        async def unreachable(*args, **kwargs):
            raise ConnectionError("connection refused")

        components.vector_store.similarity_search = unreachable
        runner = CliRunner()

        result = runner.invoke(main, ["--env-file", env_file, "query", "zebra"])

        assert result.exit_code == EXIT_FAILURE
        assert "Retrieval failed" in result.output

    @pytest.mark.parametrize("text", ["", "   "])
    def test_blank_query_is_a_usage_error(self, env_file, fake_components, text):
        components = fake_components()
        components.retrieval.query = AsyncMock()
        runner = CliRunner()

        result = runner.invoke(main, ["--env-file", env_file, "query", text])

        assert result.exit_code == 2
        assert "query must not be empty" in result.output
        assert "Traceback" not in result.output
        assert isinstance(result.exception, SystemExit)
        components.retrieval.query.assert_not_called()

    def test_rejected_query_exits_with_failure(self, env_file, fake_components):
        components = fake_components()
        components.retrieval.query = AsyncMock(side_effect=ValueError("k_parents must be positive"))
        runner = CliRunner()

        result = runner.invoke(main, ["--env-file", env_file, "query", "zebra"])

        assert result.exit_code == EXIT_FAILURE
        assert "Invalid query: k_parents must be positive" in result.output
        assert isinstance(result.exception, SystemExit)

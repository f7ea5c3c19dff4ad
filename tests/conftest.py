from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from assistant.config import get_settings
from assistant.main import app


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    return tmp_path / "docs"


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, docs_dir: Path) -> Iterator[TestClient]:
    monkeypatch.setenv("RAG_DOCS_DIR", str(docs_dir))
    monkeypatch.setenv("RAG_INGEST_ON_STARTUP", "false")
    monkeypatch.delenv("RAG_CORPUS_PATH", raising=False)
    monkeypatch.delenv("RAG_SEED_DOCUMENT", raising=False)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()

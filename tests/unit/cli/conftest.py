"""Fixtures for CLI tests: an isolated project directory with patched LiteLLM."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from quarry.cli.main import app
from quarry.db.connection import Database
from quarry.db.repository import Repository
from quarry.db.vectors import SqliteVectorStore

DIMS = 4
EMBED_MODEL = "openai/text-embedding-3-small"


def embedding_response(model, input, **kwargs) -> MagicMock:
    """Every text embeds to the same unit vector, so every entry scores 1.0."""
    response = MagicMock()
    response.data = [
        {"embedding": [1.0] + [0.0] * (DIMS - 1), "index": i} for i in range(len(input))
    ]
    return response


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def project(tmp_path: Path, monkeypatch, runner) -> Path:
    """Initialized project in a temp cwd with a 4-dim embedding config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("quarry.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    monkeypatch.setenv("QUARRY_EMBEDDING_DIMENSIONS", str(DIMS))
    monkeypatch.delenv("QUARRY_EMBEDDING_MODEL", raising=False)
    monkeypatch.delenv("QUARRY_GENERATION_MODEL", raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.output
    return tmp_path


@pytest.fixture
def mock_embedding():
    with patch(
        "quarry.ingest.embedder.litellm.embedding", side_effect=embedding_response
    ) as mock_embed:
        yield mock_embed


@pytest.fixture
def open_project(project: Path):
    """Callable returning (conn, repo, store) for inspecting project state."""
    conns = []

    def _open():
        conn = Database(project / ".quarry.db").connect()
        conns.append(conn)
        return conn, Repository(conn), SqliteVectorStore.for_model(conn, EMBED_MODEL, DIMS)

    yield _open
    for conn in conns:
        conn.close()


@pytest.fixture
def page_file(project: Path):
    """Callable writing a file into the project directory."""

    def _write(name: str, text: str) -> Path:
        path = project / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write

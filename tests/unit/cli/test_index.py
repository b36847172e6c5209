"""Tests for quarry index."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from quarry.cli.main import app


@pytest.fixture
def stored_pages(project, runner, page_file):
    """Two pages stored with --no-index."""
    for page_id, text in [("p1", "Install with make."), ("p2", "Configure quarry.yaml.")]:
        path = page_file(f"{page_id}.md", text)
        result = runner.invoke(
            app, ["add", "-f", str(path), "-t", page_id.upper(), "--id", page_id, "--no-index"]
        )
        assert result.exit_code == 0, result.output


def test_index_single_page(stored_pages, runner, mock_embedding, open_project):
    result = runner.invoke(app, ["index", "--page", "p1"])

    assert result.exit_code == 0, result.output
    assert "p1: 1 chunks" in result.output
    _, repo, store = open_project()
    assert store.count(page_id="p1") == 1
    assert store.count(page_id="p2") == 0
    assert repo.entry_ids("p1") == ["p1-chunk-0"]


def test_index_all_pages(stored_pages, runner, mock_embedding, open_project):
    result = runner.invoke(app, ["index", "--all"])

    assert result.exit_code == 0, result.output
    assert "Indexed 2 pages, 2 chunks" in result.output
    _, repo, store = open_project()
    assert store.count() == 2
    assert repo.count_entries() == 2


def test_index_twice_replaces_entries(stored_pages, runner, mock_embedding, open_project):
    runner.invoke(app, ["index", "--page", "p1"])
    result = runner.invoke(app, ["index", "--page", "p1"])

    assert result.exit_code == 0, result.output
    _, _, store = open_project()
    assert store.count(page_id="p1") == 1


def test_index_all_empty_db(project, runner, mock_embedding):
    result = runner.invoke(app, ["index", "--all"])
    assert result.exit_code == 0
    assert "No pages to index" in result.output
    mock_embedding.assert_not_called()


def test_index_unknown_page_exits_1(project, runner):
    result = runner.invoke(app, ["index", "--page", "nope"])
    assert result.exit_code == 1
    assert "Page not found" in result.output


@pytest.mark.parametrize("args", [[], ["--page", "p1", "--all"]])
def test_index_requires_exactly_one_target(project, runner, args):
    result = runner.invoke(app, ["index", *args])
    assert result.exit_code == 1
    assert "exactly one" in result.output


def test_index_all_failure_names_the_page(stored_pages, runner):
    with patch("quarry.ingest.embedder.litellm.embedding", side_effect=RuntimeError("down")):
        result = runner.invoke(app, ["index", "--all"])

    assert result.exit_code == 1
    assert "quarry index --page p1" in result.output

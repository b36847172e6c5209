"""Tests for quarry ask / quarry chat."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from quarry.cli.main import app

_COMPLETION = "quarry.rag.llm_client.litellm.completion"


def _completion(text: str) -> MagicMock:
    response = MagicMock()
    response.choices[0].message.content = text
    return response


def _delta(text: str) -> MagicMock:
    chunk = MagicMock()
    chunk.choices = [MagicMock()]
    chunk.choices[0].delta.content = text
    return chunk


@pytest.fixture(autouse=True)
def _char_token_counter():
    with patch(
        "quarry.rag.assembler.count_tokens",
        side_effect=lambda model, text: len(text) // 4,
    ):
        yield


@pytest.fixture
def indexed(project, runner, mock_embedding, page_file):
    path = page_file("guide.md", "Install with make.")
    result = runner.invoke(app, ["add", "-f", str(path), "-t", "Guide", "--id", "p1"])
    assert result.exit_code == 0, result.output


@pytest.fixture
def history_file(project):
    def _write(data) -> str:
        path = project / "history.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)

    return _write


# ------------------------------------------------------------------
# ask
# ------------------------------------------------------------------


def test_ask_prints_answer_and_sources(indexed, runner, mock_embedding):
    with patch(_COMPLETION, return_value=_completion("Run make install.")) as mock_llm:
        result = runner.invoke(app, ["ask", "How do I install?"])

    assert result.exit_code == 0, result.output
    assert "Run make install." in result.output
    assert "Sources" in result.output
    assert "Guide" in result.output
    user_prompt = mock_llm.call_args.kwargs["messages"][1]["content"]
    assert '[Document 1: "Guide"]\nInstall with make.' in user_prompt


def test_ask_without_context_prints_canned_answer(project, runner, mock_embedding):
    with patch(_COMPLETION) as mock_llm:
        result = runner.invoke(app, ["ask", "anything"])

    assert result.exit_code == 0, result.output
    assert "I could not find" in result.output
    mock_llm.assert_not_called()


def test_ask_stream_prints_deltas(indexed, runner, mock_embedding):
    deltas = iter([_delta("Run "), _delta("make.")])
    with patch(_COMPLETION, return_value=deltas):
        result = runner.invoke(app, ["ask", "install?", "--stream"])

    assert result.exit_code == 0, result.output
    assert "Run make." in result.output
    assert "Guide" in result.output


def test_ask_generation_failure_exits_1(indexed, runner, mock_embedding):
    with patch(_COMPLETION, side_effect=RuntimeError("upstream 500")):
        result = runner.invoke(app, ["ask", "install?"])

    assert result.exit_code == 1
    assert "Failed to generate answer" in result.output
    assert "upstream 500" not in result.output


def test_ask_blank_query_exits_1(project, runner, mock_embedding):
    result = runner.invoke(app, ["ask", "   "])
    assert result.exit_code == 1
    mock_embedding.assert_not_called()


def test_ask_without_generation_key_exits_1(project, runner, monkeypatch):
    monkeypatch.setenv("QUARRY_GENERATION_MODEL", "anthropic/claude-3-haiku")
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    result = runner.invoke(app, ["ask", "q"])

    assert result.exit_code == 1
    assert "ANTHROPIC_API_KEY" in result.output


# ------------------------------------------------------------------
# chat
# ------------------------------------------------------------------


def test_chat_answers_last_user_message(indexed, runner, mock_embedding, history_file):
    messages = [
        {"role": "user", "content": "What is quarry?"},
        {"role": "assistant", "content": "A search tool."},
        {"role": "user", "content": "How do I install it?"},
    ]
    path = history_file({"messages": messages})

    with patch(_COMPLETION, return_value=_completion("Use make.")) as mock_llm:
        result = runner.invoke(app, ["chat", "--history", path])

    assert result.exit_code == 0, result.output
    assert "Use make." in result.output
    sent = mock_llm.call_args.kwargs["messages"]
    assert sent[0]["role"] == "system"
    assert sent[1:] == messages
    assert mock_embedding.call_args.kwargs["input"] == ["How do I install it?"]


def test_chat_without_user_message_exits_1(indexed, runner, history_file):
    path = history_file([{"role": "assistant", "content": "Hello"}])

    result = runner.invoke(app, ["chat", "--history", path])

    assert result.exit_code == 1
    assert "Invalid conversation history" in result.output


def test_chat_rejects_non_list_history(project, runner, history_file):
    path = history_file({"role": "user", "content": "hi"})

    result = runner.invoke(app, ["chat", "--history", path])

    assert result.exit_code == 1
    assert "Invalid conversation history" in result.output


def test_chat_missing_history_file_exits_1(project, runner):
    result = runner.invoke(app, ["chat", "--history", "missing.json"])
    assert result.exit_code == 1
    assert "File not found" in result.output

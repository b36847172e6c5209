"""Tests for quarry init."""

from __future__ import annotations

from pathlib import Path

import yaml

from quarry.cli.main import app
from quarry.db.connection import Database
from quarry.db.migrations import current_version
from quarry.db.schema import CURRENT_VERSION


def test_init_creates_db_and_config(tmp_path: Path, runner) -> None:
    target = tmp_path / "kb"

    result = runner.invoke(app, ["init", str(target)])

    assert result.exit_code == 0, result.output
    assert (target / ".quarry.db").exists()
    config = yaml.safe_load((target / "quarry.yaml").read_text(encoding="utf-8"))
    assert config["embedding"]["model"] == "openai/text-embedding-3-small"

    with Database(target / ".quarry.db") as conn:
        assert current_version(conn) == CURRENT_VERSION


def test_init_twice_preserves_config(tmp_path: Path, runner) -> None:
    runner.invoke(app, ["init", str(tmp_path)])
    (tmp_path / "quarry.yaml").write_text("search:\n  limit: 3\n", encoding="utf-8")

    result = runner.invoke(app, ["init", str(tmp_path)])

    assert result.exit_code == 0
    assert "already" in result.output
    assert (tmp_path / "quarry.yaml").read_text(encoding="utf-8") == "search:\n  limit: 3\n"

"""Tests for the uiflow command line (uiflow/cli.py)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from uiflow import cli


@pytest.fixture(autouse=True)
def _no_log_handlers(monkeypatch):
    monkeypatch.setattr(cli, "get_cli_logger", lambda verbose=False: None)


def _run(*argv: str) -> int:
    return cli.main(list(argv))


class TestExitGateCommand:
    def test_pass_returns_zero(self, project: Path, capsys):
        assert _run("exit-gate", "init", str(project)) == 0
        out = capsys.readouterr().out
        assert "Exit gate: init" in out
        assert "PASSED" in out
        assert (project / "workspace" / "reports" / "exit-gate-init.json").is_file()

    def test_blocked_returns_one(self, project: Path, capsys):
        (project / "index.html").unlink()
        assert _run("exit-gate", "generate", str(project)) == 1
        assert "[FAIL] file: index.html: missing" in capsys.readouterr().out

    def test_unknown_phase_is_usage_error(self, project: Path, capsys):
        assert _run("exit-gate", "deploy", str(project)) == 2
        assert "Unknown phase 'deploy'" in capsys.readouterr().err

    def test_missing_project_dir(self, tmp_path: Path, capsys):
        assert _run("exit-gate", "init", str(tmp_path / "nope")) == 1
        assert "Project directory not found" in capsys.readouterr().err


class TestTransitionCommand:
    def test_invalid_edge_is_usage_error(self, project: Path, capsys):
        assert _run("transition", "init", "build-diagrams", str(project)) == 2
        assert "error:" in capsys.readouterr().err

    def test_advance(self, project: Path):
        assert _run("transition", "init", "generate", str(project)) == 0
        report = json.loads((project / "workspace" / "reports" / "transition.json").read_text(encoding="utf-8"))
        assert report["advanced"] is True
        assert report["current_phase"] == "generate"


class TestCheckCommands:
    def test_template_variable_check_writes_report(self, project: Path):
        assert _run("template-variable-check", str(project)) == 0
        assert (project / "workspace" / "reports" / "template-variables.json").is_file()

    def test_index_data_check_fails_on_mismatch(self, project: Path, capsys):
        text = (project / "index.html").read_text(encoding="utf-8")
        (project / "index.html").write_text(
            text.replace('<span id="ipad-count">3</span>', '<span id="ipad-count">9</span>'), encoding="utf-8"
        )
        assert _run("index-data-check", str(project)) == 1
        assert "ipad_total mismatch" in capsys.readouterr().out

    def test_navigation_check(self, project: Path):
        assert _run("navigation-check", str(project)) == 0

    def test_consistency_check(self, project: Path, capsys):
        assert _run("consistency-check", str(project)) == 0
        assert (project / "workspace" / "reports" / "consistency.json").is_file()

    def test_consistency_check_missing_standard(self, project: Path, capsys):
        assert _run("consistency-check", "--standards", str(project / "none.json"), str(project)) == 1
        assert "none.json" in capsys.readouterr().err

    def test_post_generation_gate(self, project: Path):
        assert _run("post-generation-gate", str(project)) == 0
        assert (project / "workspace" / "validation-report.json").is_file()


class TestCaptureCommand:
    def test_validate_only(self, project: Path):
        assert _run("capture", "--validate-only", str(project)) == 0
        report = json.loads((project / "workspace" / "reports" / "capture.json").read_text(encoding="utf-8"))
        assert report["mode"] == "validate-only"

    def test_retry_failed_with_empty_ledger(self, project: Path):
        assert _run("capture", "--retry-failed", str(project)) == 0
        assert not (project / "workspace" / "screenshot-error-log.json").exists()
        assert not (project / "workspace" / "reports" / "capture.json").exists()

    def test_modes_are_exclusive(self, project: Path, capsys):
        with pytest.raises(SystemExit):
            _run("capture", "--validate-only", "--retry-failed", str(project))


class TestWorkspaceCommands:
    def test_init_creates_workspace(self, tmp_path: Path, capsys):
        assert _run("init", str(tmp_path)) == 0
        out = capsys.readouterr().out
        assert "Current phase: init" in out
        assert (tmp_path / "workspace" / "current-process.json").is_file()
        assert (tmp_path / "workspace" / "context").is_dir()

    def test_init_keeps_existing_document(self, project: Path):
        _run("transition", "init", "generate", str(project))
        assert _run("init", str(project)) == 0
        doc = json.loads((project / "workspace" / "current-process.json").read_text(encoding="utf-8"))
        assert doc["current_process"] == "generate"

    def test_status(self, project: Path, capsys):
        assert _run("status", str(project)) == 0
        assert "init" in capsys.readouterr().out

    def test_status_without_workspace(self, tmp_path: Path, capsys):
        assert _run("status", str(tmp_path)) == 0
        assert "run: uiflow init" in capsys.readouterr().out

"""Tests for workspace document persistence (uiflow/state/workspace.py).

Covers:
- Default document and phase ordering
- Atomic save / load
- Corrupt document recovery
- Legacy phase alias migration
- record_validation advancement rules
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from uiflow.errors import UnknownPhaseError
from uiflow.models import CheckResult, ValidationResult
from uiflow.phases import PHASE_ORDER, next_phase, normalize_phase
from uiflow.state import WorkspaceState, default_document


def _result(passed: bool, phase_id: str = "init") -> ValidationResult:
    checks = [CheckResult(name="file: index.html", passed=passed, detail="exists" if passed else "missing")]
    return ValidationResult.from_checks(checks, phase_id=phase_id)


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------


class TestPhases:
    def test_legacy_aliases_normalize(self):
        assert normalize_phase("03-generation") == "generate"
        assert normalize_phase("06-screenshot") == "capture-screenshots"
        assert normalize_phase("finalize") == "finalize"

    def test_unknown_phase_raises(self):
        with pytest.raises(UnknownPhaseError, match="Unknown phase 'bogus'"):
            normalize_phase("bogus")

    def test_unknown_phase_is_value_error(self):
        with pytest.raises(ValueError):
            normalize_phase("09-ship")

    def test_next_phase_order(self):
        assert next_phase("init") == "generate"
        assert next_phase("05-diagram") == "capture-screenshots"
        assert next_phase("finalize") is None


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


class TestPersistence:
    def test_default_document(self):
        doc = default_document()
        assert doc.current_process == "init"
        assert list(doc.progress) == PHASE_ORDER
        assert doc.progress["init"] == "in_progress"
        assert all(doc.progress[p] == "pending" for p in PHASE_ORDER[1:])

    def test_missing_file_loads_default(self, tmp_path: Path):
        state = WorkspaceState(tmp_path)
        assert not state.exists()
        assert state.document.current_process == "init"

    def test_save_then_load(self, tmp_path: Path):
        state = WorkspaceState(tmp_path)
        state.update_context(project_name="demo")
        state.save()

        reloaded = WorkspaceState(tmp_path).load()
        assert reloaded.context["project_name"] == "demo"
        assert reloaded.current_process == "init"

    def test_atomic_save_leaves_no_temp_files(self, tmp_path: Path):
        state = WorkspaceState(tmp_path)
        for i in range(3):
            state.update_context(run=i)
            state.save()

        files = sorted(p.name for p in (tmp_path / "workspace").iterdir())
        assert files == ["current-process.json"]
        assert json.loads(state.path.read_text(encoding="utf-8"))["context"]["run"] == 2

    def test_corrupt_document_recovered(self, tmp_path: Path):
        path = tmp_path / "workspace" / "current-process.json"
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")

        doc = WorkspaceState(tmp_path).load()

        assert doc.current_process == "init"
        assert (tmp_path / "workspace" / "current-process.json.corrupt").read_text() == "{not json"
        assert not path.exists()

    def test_legacy_keys_migrated(self, tmp_path: Path):
        path = tmp_path / "workspace" / "current-process.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({
            "skill": "app-uiux-designer",
            "current_process": "04-validation",
            "progress": {"00-init": "completed", "03-generation": "completed", "04-validation": "in_progress"},
            "recovery_hints": {"last_completed_node": "03-generation", "current_node": "04-validation"},
            "custom_field": 1,
        }), encoding="utf-8")

        doc = WorkspaceState(tmp_path).load()

        assert doc.current_process == "validate-navigation"
        assert doc.progress["init"] == "completed"
        assert doc.progress["generate"] == "completed"
        assert doc.progress["finalize"] == "pending"
        assert doc.recovery_hints.last_completed_phase == "generate"
        assert doc.recovery_hints.current_phase == "validate-navigation"

    def test_unknown_fields_preserved(self, tmp_path: Path):
        path = tmp_path / "workspace" / "current-process.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"current_process": "init", "owner": "design-team"}), encoding="utf-8")

        state = WorkspaceState(tmp_path)
        state.save()

        assert json.loads(path.read_text(encoding="utf-8"))["owner"] == "design-team"

    def test_ensure_workspace_creates_subdirectories(self, tmp_path: Path):
        created = WorkspaceState(tmp_path).ensure_workspace()
        assert created == ["workspace", "workspace/context", "workspace/state"]
        assert WorkspaceState(tmp_path).ensure_workspace() == []


# ---------------------------------------------------------------------------
# record_validation
# ---------------------------------------------------------------------------


class TestRecordValidation:
    def test_pass_advances(self, tmp_path: Path):
        state = WorkspaceState(tmp_path)
        doc = state.record_validation("init", _result(True))

        assert doc.progress["init"] == "completed"
        assert doc.progress["generate"] == "in_progress"
        assert doc.current_process == "generate"
        assert doc.validation_state["init"].passed is True
        assert doc.recovery_hints.last_completed_phase == "init"
        assert doc.recovery_hints.last_action.startswith("Exit gate init PASSED")

    def test_fail_keeps_phase_in_progress(self, tmp_path: Path):
        state = WorkspaceState(tmp_path)
        doc = state.record_validation("init", _result(False))

        assert doc.progress["init"] == "in_progress"
        assert doc.current_process == "init"
        assert doc.validation_state["init"].passed is False
        assert doc.validation_state["init"].error_count == 1
        assert doc.recovery_hints.pending_fixes == ["file: index.html: missing"]

    def test_pass_without_advance_only_records(self, tmp_path: Path):
        state = WorkspaceState(tmp_path)
        doc = state.record_validation("init", _result(True), advance=False)

        assert doc.progress["init"] == "in_progress"
        assert doc.current_process == "init"
        assert doc.validation_state["init"].passed is True

    def test_never_moves_backwards(self, tmp_path: Path):
        state = WorkspaceState(tmp_path)
        for phase in ("init", "generate", "validate-navigation"):
            state.record_validation(phase, _result(True, phase))
        assert state.document.current_process == "build-diagrams"

        state.record_validation("init", _result(True))

        assert state.document.current_process == "build-diagrams"

    def test_failed_recheck_keeps_completed_record_passing(self, tmp_path: Path):
        state = WorkspaceState(tmp_path)
        state.record_validation("init", _result(True))
        state.record_validation("init", _result(False), advance=False)

        doc = state.document
        assert doc.progress["init"] == "completed"
        assert doc.validation_state["init"].passed is True
        assert doc.context["failed_rechecks"]["init"]["passed"] is False
        assert state.failed_rechecks() == ["init"]
        assert doc.recovery_hints.pending_fixes == ["file: index.html: missing"]

    def test_passing_recheck_clears_failure(self, tmp_path: Path):
        state = WorkspaceState(tmp_path)
        state.record_validation("init", _result(True))
        state.record_validation("init", _result(False), advance=False)
        state.record_validation("init", _result(True), advance=False)

        assert state.failed_rechecks() == []
        assert "failed_rechecks" not in state.document.context

    def test_completed_phases_always_have_passing_record(self, tmp_path: Path):
        state = WorkspaceState(tmp_path)
        for phase in ("init", "generate"):
            state.record_validation(phase, _result(True, phase))
        state.record_validation("init", _result(False), advance=False)
        state.record_validation("generate", _result(False, "generate"))

        doc = state.document
        for phase, status in doc.progress.items():
            if status == "completed":
                assert doc.validation_state[phase].passed is True

    def test_finalize_pass_finishes_pipeline(self, tmp_path: Path):
        state = WorkspaceState(tmp_path)
        for phase in PHASE_ORDER:
            state.record_validation(phase, _result(True, phase))

        doc = state.document
        assert doc.current_process is None
        assert all(doc.progress[p] == "completed" for p in PHASE_ORDER)

    def test_alias_accepted(self, tmp_path: Path):
        state = WorkspaceState(tmp_path)
        state.record_validation("00-init", _result(True))
        assert "init" in state.document.validation_state

    def test_phase_view(self, tmp_path: Path):
        state = WorkspaceState(tmp_path)
        state.record_validation("init", _result(True))
        view = state.document.phase("init")
        assert view.status == "completed"
        assert view.timestamp == view.validation_result.timestamp
        assert [p.phase_id for p in state.document.phases()] == PHASE_ORDER

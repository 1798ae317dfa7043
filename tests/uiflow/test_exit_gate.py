"""Tests for per-phase exit validation (uiflow/gates/exit_gate.py).

Covers:
- Rule registry covers every phase
- Each phase passing on a complete project
- Fail-closed behavior when required aggregates are missing
- Screen parity, overview truthfulness, click handler placeholders
- Error ledger blocking the capture phase
"""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.factories import DEFAULT_SCREENS, build_documents, build_project, screen_html, write, write_index
from uiflow.capture.ledger import ErrorLedgerStore, record_failure
from uiflow.errors import UnknownPhaseError
from uiflow.gates import EXIT_RULES, ExitValidator
from uiflow.phases import PHASE_ORDER

FIVE_SCREENS = DEFAULT_SCREENS + [
    ("home", "SCR-HOME-002-search"),
    ("home", "SCR-HOME-003-detail"),
]


def _checks(result):
    return {c.name: c for c in result.checks}


def _failed(result):
    return {c.name: c.detail for c in result.failed_checks}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_every_phase_has_rules(self):
        assert set(EXIT_RULES) == set(PHASE_ORDER)

    def test_unknown_phase(self, project: Path):
        with pytest.raises(UnknownPhaseError):
            ExitValidator(project).validate("deploy")

    def test_alias_resolves(self, project: Path):
        result = ExitValidator(project).validate("03-generation")
        assert result.phase_id == "generate"

    def test_validation_never_writes_state(self, project: Path, state):
        before = state.path.read_bytes()
        ExitValidator(project).validate("init")
        ExitValidator(project).validate("generate")
        assert state.path.read_bytes() == before


# ---------------------------------------------------------------------------
# Complete project
# ---------------------------------------------------------------------------


class TestCompleteProject:
    @pytest.mark.parametrize("phase", ["init", "generate", "validate-navigation", "build-diagrams"])
    def test_phase_passes(self, project: Path, phase: str):
        result = ExitValidator(project).validate(phase)
        assert result.passed, _failed(result)

    def test_capture_passes_with_warnings_when_ledger_empty(self, project: Path):
        result = ExitValidator(project).validate("capture-screenshots")
        assert result.passed
        checks = _checks(result)
        assert checks["screenshots (ipad)"].severity == "warning"
        assert checks["error ledger"].passed

    def test_feedback_writeback(self, project: Path):
        build_documents(project.parent)
        result = ExitValidator(project).validate("feedback-writeback")
        assert result.passed, _failed(result)
        assert result.warning_count == 0


# ---------------------------------------------------------------------------
# init / generate
# ---------------------------------------------------------------------------


class TestInitGate:
    def test_missing_workspace_document(self, tmp_path: Path):
        root = build_project(tmp_path / "p", with_workspace=False)
        failed = _failed(ExitValidator(root).validate("init"))
        assert failed == {"workspace document": "workspace/current-process.json missing"}

    def test_unresolved_variable_in_root_html(self, project: Path):
        write(project / "device-preview.html", "<html><body>{{FIRST_SCREEN_PATH}}</body></html>")
        failed = _failed(ExitValidator(project).validate("init"))
        assert "template-variables (root html)" in failed
        assert "{{FIRST_SCREEN_PATH}}" in failed["template-variables (root html)"]


class TestGenerateGate:
    def test_parity_mismatch_blocks(self, tmp_path: Path):
        root = build_project(tmp_path / "p", screens=FIVE_SCREENS)
        (root / "iphone" / "SCR-HOME-003-detail.html").unlink()

        result = ExitValidator(root).validate("generate")

        assert not result.passed
        assert _failed(result)["parity"] == "ipad=5, iphone=4: counts differ"

    def test_empty_profile_blocks(self, project: Path):
        for f in (project / "iphone").iterdir():
            f.unlink()
        failed = _failed(ExitValidator(project).validate("generate"))
        assert failed["parity"] == "ipad=3, iphone=0: both profiles must be non-empty"

    def test_missing_overview_fails_closed(self, project: Path):
        (project / "index.html").unlink()

        failed = _failed(ExitValidator(project).validate("generate"))

        assert failed["file: index.html"] == "missing"
        for name in ("overview placeholder", "index-data", "module cards"):
            assert failed[name] == "skipped: required file missing (index.html)"

    def test_overview_counter_mismatch(self, project: Path):
        write_index(project, DEFAULT_SCREENS, iphone=2)
        failed = _failed(ExitValidator(project).validate("generate"))
        assert "iphone_total mismatch: index.html displays 2, expected 3" in failed["index-data"]

    def test_placeholder_text(self, project: Path):
        write_index(project, DEFAULT_SCREENS, extra="<p>尚未產生畫面</p>")
        failed = _failed(ExitValidator(project).validate("generate"))
        assert list(failed) == ["overview placeholder"]

    def test_too_few_module_cards(self, project: Path):
        write_index(project, DEFAULT_SCREENS, cards=1)
        failed = _failed(ExitValidator(project).validate("generate"))
        assert failed == {"module cards": "1 module cards, 2 modules on disk"}

    def test_alert_placeholder_handler(self, project: Path):
        write(
            project / "auth" / "SCR-AUTH-002-register.html",
            screen_html("register", "../home/SCR-HOME-001-dashboard.html",
                        body="<button onclick=\"alert('TODO')\">Terms</button>"),
        )
        failed = _failed(ExitValidator(project).validate("generate"))
        assert list(failed) == ["click handlers: alert"]
        assert "auth/SCR-AUTH-002-register.html" in failed["click handlers: alert"]

    def test_sidebar_shortfall_is_warning(self, project: Path):
        write(project / "device-preview.html", "<html><body>URLSearchParams</body></html>")
        result = ExitValidator(project).validate("generate")
        assert result.passed
        assert _checks(result)["device-preview sidebar"].severity == "warning"


# ---------------------------------------------------------------------------
# validate-navigation / build-diagrams
# ---------------------------------------------------------------------------


class TestValidateNavigationGate:
    def test_incomplete_navigation_blocks(self, project: Path):
        write(
            project / "iphone" / "SCR-AUTH-001-login.html",
            screen_html("login", "SCR-AUTH-002-register.html", body='<a href="#">Help</a>'),
        )
        failed = _failed(ExitValidator(project).validate("validate-navigation"))
        assert list(failed) == ["navigation coverage"]
        assert "empty-href" in failed["navigation coverage"]

    def test_sidebar_must_match_exactly(self, project: Path):
        write(project / "auth" / "SCR-AUTH-003-forgot.html", screen_html("forgot", "SCR-AUTH-001-login.html"))
        write(project / "iphone" / "SCR-AUTH-003-forgot.html", screen_html("forgot", "SCR-AUTH-001-login.html"))
        failed = _failed(ExitValidator(project).validate("validate-navigation"))
        assert failed["device-preview sidebar"] == "3 sidebar items, 4 screens"

    def test_legend_fails_consistency(self, project: Path):
        path = project / "docs" / "ui-flow-diagram-iphone.html"
        path.write_text(
            path.read_text(encoding="utf-8").replace("</body>", '<div class="legend"></div></body>'),
            encoding="utf-8",
        )
        failed = _failed(ExitValidator(project).validate("validate-navigation"))
        assert "Diagram No Legend" in failed["consistency"]


class TestBuildDiagramsGate:
    def test_missing_diagram_fails_closed(self, project: Path):
        (project / "docs" / "ui-flow-diagram-iphone.html").unlink()

        failed = _failed(ExitValidator(project).validate("build-diagrams"))

        assert failed["file: docs/ui-flow-diagram-iphone.html"] == "missing"
        assert failed["diagram cards (iphone)"].startswith("skipped: required file missing")
        assert failed["iframe-src"] == "skipped: required file missing (docs/ui-flow-diagram-iphone.html)"
        assert failed["consistency"] == "skipped: required file missing (docs/ui-flow-diagram-iphone.html)"

    def test_card_count_must_match(self, project: Path):
        write(project / "home" / "SCR-HOME-002-search.html", screen_html("search", "SCR-HOME-001-dashboard.html"))
        failed = _failed(ExitValidator(project).validate("build-diagrams"))
        assert failed["diagram cards (ipad)"] == "3 screen cards, 4 screens"
        assert failed["diagram cards (iphone)"] == "3 screen cards, 4 screens"


# ---------------------------------------------------------------------------
# capture-screenshots / feedback-writeback / finalize
# ---------------------------------------------------------------------------


class TestCaptureGate:
    def test_ledger_entries_block(self, project: Path):
        store = ErrorLedgerStore(project)
        ledger = store.load()
        record_failure(ledger, "SCR-HOME-001-dashboard", "iphone", "Timeout", "iphone/SCR-HOME-001-dashboard.html", 3)
        store.save(ledger)

        result = ExitValidator(project).validate("capture-screenshots")

        failed = _failed(result)
        assert "uiflow capture --retry-failed" in failed["error ledger"]
        assert failed["screenshots (ipad)"] == "0/3 snapshots"

    def test_complete_screenshots(self, project: Path):
        for profile in ("ipad", "iphone"):
            for _, sid in DEFAULT_SCREENS:
                write(project / "screenshots" / profile / f"{sid}.png", "png")
        result = ExitValidator(project).validate("capture-screenshots")
        assert result.passed
        assert result.warning_count == 0


class TestFeedbackGate:
    def test_no_document_root(self, project: Path):
        failed = _failed(ExitValidator(project).validate("feedback-writeback"))
        assert "document root" in failed

    def test_missing_ipad_references(self, project: Path):
        build_documents(project.parent)
        sdd = project.parent / "02-design" / "SDD-demo.md"
        sdd.write_text(sdd.read_text(encoding="utf-8").replace("images/ipad/SCR-AUTH-001-login.png", ""), encoding="utf-8")

        failed = _failed(ExitValidator(project).validate("feedback-writeback"))

        assert list(failed) == ["SDD image refs (ipad)"]


class TestFinalizeGate:
    def test_requires_earlier_phases(self, project: Path):
        failed = _failed(ExitValidator(project).validate("finalize"))
        assert list(failed) == ["earlier phases completed"]
        assert failed["earlier phases completed"].startswith("not completed: init, generate")

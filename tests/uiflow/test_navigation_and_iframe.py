"""Tests for clickable-element extraction, navigation coverage and iframe src paths."""

from __future__ import annotations

from pathlib import Path

from tests.factories import screen_html, write
from uiflow.validators import IframeSrcValidator, NavigationValidator
from uiflow.validators.navigation import extract_clickable_elements, resolve_target


def _kinds(html: str):
    return [e.kind for e in extract_clickable_elements(html, "s.html")]


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


class TestExtractClickableElements:
    def test_location_href_target(self):
        elements = extract_clickable_elements(
            "<button onclick=\"location.href='../home/SCR-HOME-001-x.html'\">Go</button>", "s.html"
        )
        assert len(elements) == 1
        assert elements[0].kind == "onclick-href"
        assert elements[0].target == "../home/SCR-HOME-001-x.html"

    def test_empty_onclick(self):
        assert _kinds('<div onclick="">x</div>') == ["empty-onclick"]

    def test_alert_onclick(self):
        assert _kinds("<button onclick=\"alert('coming soon')\">Pay</button>") == ["alert-onclick"]

    def test_empty_href(self):
        assert _kinds('<a href="#">Help</a>') == ["empty-href"]

    def test_fragment_href_ignored(self):
        assert _kinds('<a href="#section-2">Jump</a>') == []

    def test_button_without_handler(self):
        assert _kinds("<body><button>Save</button></body>") == ["button-no-onclick"]

    def test_submit_button_allowed(self):
        assert _kinds('<form><button type="submit">Send</button></form>') == []

    def test_button_inside_link_allowed(self):
        assert _kinds('<a href="next.html"><button>Next</button></a>') == ["href"]

    def test_close_button_without_handler(self):
        assert _kinds('<body><button aria-label="Close">×</button></body>') == ["close-button-no-onclick"]

    def test_close_icon_without_handler(self):
        assert "close-icon-no-onclick" in _kinds('<body><span class="icon">✕</span></body>')

    def test_svg_close_icon_button(self):
        html = (
            "<body><button><svg viewBox='0 0 24 24'>"
            '<path d="M6 18L18 6M6 6l12 12"/></svg></button></body>'
        )
        assert _kinds(html) == ["close-button-no-onclick"]

    def test_void_on_navigation_id(self):
        html = (
            '<a id="btn_back" onclick="void(0)">Back</a>'
            '<a id="toggle" onclick="void(0)">Toggle</a>'
        )
        assert _kinds(html) == ["void-onclick-navigation"]

    def test_script_handler(self):
        assert _kinds('<div onclick="history.back()">Back</div>') == ["script-handler"]

    def test_line_numbers(self):
        html = '<html>\n<body>\n<button onclick="">x</button>\n<a href="#">y</a>'
        elements = extract_clickable_elements(html, "s.html")
        assert [(e.kind, e.line) for e in elements] == [("empty-onclick", 3), ("empty-href", 4)]


class TestResolveTarget:
    def test_external(self, tmp_path: Path):
        assert resolve_target("https://example.com", tmp_path / "a.html", set()) == "external"

    def test_relative_file(self, tmp_path: Path):
        write(tmp_path / "b.html", "<html></html>")
        assert resolve_target("b.html?tab=1#top", tmp_path / "a.html", set()) == "file"

    def test_matched_by_name(self, tmp_path: Path):
        assert resolve_target("../elsewhere/c.html", tmp_path / "a.html", {"c.html"}) == "matched"

    def test_unresolved(self, tmp_path: Path):
        assert resolve_target("missing.html", tmp_path / "a.html", {"c.html"}) is None


# ---------------------------------------------------------------------------
# Navigation coverage
# ---------------------------------------------------------------------------


class TestNavigationValidator:
    def test_complete_project_full_coverage(self, project: Path):
        report = NavigationValidator(project).run()
        assert report.coverage == 100.0
        assert report.screens_checked == 6
        assert report.total == 12
        assert NavigationValidator(project).validate(report).passed

    def test_broken_target_lowers_coverage(self, project: Path):
        write(
            project / "auth" / "SCR-AUTH-001-login.html",
            screen_html("login", "../auth/SCR-AUTH-404-gone.html"),
        )

        validator = NavigationValidator(project)
        report = validator.run()
        result = validator.validate(report)

        assert report.coverage < 100.0
        assert not result.passed
        issue = next(c for c in result.failed_checks if c.name.startswith("navigation: auth/"))
        assert "Target not found: ../auth/SCR-AUTH-404-gone.html" in issue.detail

    def test_missing_notify_parent_is_issue(self, project: Path):
        html = screen_html("login", "SCR-AUTH-002-register.html").replace(
            '<script src="../shared/notify-parent.js"></script>', ""
        )
        write(project / "iphone" / "SCR-AUTH-001-login.html", html)

        report = NavigationValidator(project).run()

        assert [e.kind for e in report.issues] == ["missing-notify-parent"]

    def test_threshold_override(self, project: Path):
        write(
            project / "home" / "SCR-HOME-001-dashboard.html",
            screen_html("dashboard", "../auth/SCR-AUTH-001-login.html", body="<button>Later</button>"),
        )
        report = NavigationValidator(project).run()
        assert report.coverage < 100.0
        assert NavigationValidator(project, threshold=50).validate(report).checks[0].passed

    def test_no_screens_is_full_coverage(self, tmp_path: Path):
        assert NavigationValidator(tmp_path).run().coverage == 100.0


# ---------------------------------------------------------------------------
# iframe src
# ---------------------------------------------------------------------------


class TestIframeSrcValidator:
    def test_complete_project_passes(self, project: Path):
        result = IframeSrcValidator(project).validate()
        assert result.passed
        assert result.warning_count == 0

    def test_broken_diagram_src(self, project: Path):
        diagram = project / "docs" / "ui-flow-diagram-ipad.html"
        diagram.write_text(
            diagram.read_text(encoding="utf-8").replace(
                'src="../home/SCR-HOME-001-dashboard.html"', 'src="../home/SCR-HOME-009-missing.html"'
            ),
            encoding="utf-8",
        )

        result = IframeSrcValidator(project).validate()

        failed = {c.name: c.detail for c in result.failed_checks}
        assert failed == {
            "iframe-src: docs/ui-flow-diagram-ipad.html": "1/3 paths missing: ../home/SCR-HOME-009-missing.html",
        }

    def test_broken_preview_paths(self, project: Path):
        (project / "iphone" / "SCR-AUTH-002-register.html").unlink()
        result = IframeSrcValidator(project).validate()
        names = {c.name for c in result.failed_checks}
        assert "iframe-src: device-preview.html data-iphone" in names
        assert "iframe-src: docs/ui-flow-diagram-iphone.html" in names

    def test_missing_diagram(self, project: Path):
        (project / "docs" / "ui-flow-diagram-iphone.html").unlink()
        failed = {c.name: c.detail for c in IframeSrcValidator(project).validate().failed_checks}
        assert failed["iframe-src: docs/ui-flow-diagram-iphone.html"] == "docs/ui-flow-diagram-iphone.html missing"

    def test_card_count_mismatch_is_warning(self, project: Path):
        write(project / "auth" / "SCR-AUTH-003-forgot.html", screen_html("forgot", "SCR-AUTH-001-login.html"))
        result = IframeSrcValidator(project).validate()
        assert result.passed
        assert result.warning_count == 2

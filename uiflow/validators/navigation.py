"""Clickable-element navigation coverage.

Every interactive element in every generated screen must declare a
concrete navigation target. Elements are extracted with the stdlib HTML
parser (which gives line numbers) and their targets resolved against the
project filesystem. Coverage is valid elements / total elements.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from pathlib import Path
from typing import Dict, List, Optional, Set
from urllib.parse import unquote, urlsplit

from .. import settings
from ..layout import ProjectLayout
from ..models import CheckResult, ValidationResult

logger = logging.getLogger("uiflow.validators.navigation")

EXTERNAL_PREFIXES = ("http://", "https://", "mailto:", "tel:", "javascript:")

LOCATION_HREF_RE = re.compile(r"location\.href\s*=\s*['\"]([^'\"]+)['\"]")
VOID_RE = re.compile(r"^\s*(?:javascript:)?\s*void\s*\(\s*0\s*\)\s*;?\s*$", re.IGNORECASE)
NAV_ID_PREFIXES = ("btn_", "nav_", "cell_", "lnk_")

CLOSE_PATHS = ("M6 18L18 6", "M6 6l12 12", "M18 6L6 18", "M4 4L20 20", "M20 4L4 20")
CLOSE_SYMBOLS = ("✕", "✖", "╳")
MULTIPLY_RE = re.compile(r"×(?!\d)")
CLOSE_LABELS = ("close", "關閉", "離開")

# Elements with no closing tag
VOID_ELEMENTS = {
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "track", "wbr",
}

# Element kinds that count as failures
ISSUE_KINDS = {
    "empty-onclick": "Empty onclick has no action",
    "alert-onclick": "onclick only shows alert() placeholder",
    "empty-href": 'Empty href="#" has no navigation target',
    "void-onclick-navigation": "Navigation element uses void(0) instead of a real target",
    "button-no-onclick": "Button has no onclick handler",
    "close-button-no-onclick": "Close/exit button has no onclick handler",
    "close-icon-no-onclick": "Close icon has no onclick handler",
    "missing-notify-parent": "Screen does not include shared/notify-parent.js",
}


@dataclass
class ClickableElement:
    file: str
    line: int
    kind: str
    target: Optional[str] = None
    valid: bool = False
    detail: str = ""

    @property
    def is_issue(self) -> bool:
        return self.kind in ISSUE_KINDS


@dataclass
class _Open:
    tag: str
    attrs: Dict[str, str]
    line: int
    has_handler: bool
    text: List[str] = field(default_factory=list)
    paths: List[str] = field(default_factory=list)


def _looks_like_close(attrs: Dict[str, str], text: str, paths: List[str]) -> bool:
    if any(p in d for d in paths for p in CLOSE_PATHS):
        return True
    if any(s in text for s in CLOSE_SYMBOLS) or MULTIPLY_RE.search(text):
        return True
    label = attrs.get("aria-label", "").lower()
    if any(lbl in label for lbl in CLOSE_LABELS):
        return True
    classes = attrs.get("class", "").lower()
    return any(c in classes for c in ("close", "dismiss"))


class _ClickableParser(HTMLParser):
    """Collect clickable elements and handler problems from one document."""

    def __init__(self, file: str):
        super().__init__(convert_charrefs=True)
        self.file = file
        self.elements: List[ClickableElement] = []
        self._stack: List[_Open] = []

    # -- helpers -------------------------------------------------------

    def _add(self, line: int, kind: str, target: Optional[str] = None, detail: str = ""):
        self.elements.append(ClickableElement(self.file, line, kind, target, detail=detail))

    def _inside_handler(self) -> bool:
        return any(o.has_handler for o in self._stack)

    def _inspect_onclick(self, tag: str, attrs: Dict[str, str], line: int) -> None:
        onclick = attrs["onclick"]
        if not onclick.strip():
            self._add(line, "empty-onclick")
            return
        m = LOCATION_HREF_RE.search(onclick)
        if m:
            self._add(line, "onclick-href", m.group(1))
            return
        if "alert(" in onclick:
            self._add(line, "alert-onclick", detail=onclick.strip()[:60])
            return
        if VOID_RE.match(onclick):
            element_id = attrs.get("id", "")
            if element_id.startswith(NAV_ID_PREFIXES):
                self._add(line, "void-onclick-navigation", detail=element_id)
            return
        # history.back(), openScreen(...), toggles: a handler without a file target
        self._add(line, "script-handler", onclick.strip()[:60])

    # -- HTMLParser hooks ----------------------------------------------

    def handle_starttag(self, tag, attrs):
        attr_map = {k: (v or "") for k, v in attrs}
        line = self.getpos()[0]
        has_onclick = "onclick" in attr_map
        href = attr_map.get("href")

        if has_onclick:
            self._inspect_onclick(tag, attr_map, line)
        elif tag == "a" and href is not None:
            if href.strip() == "#":
                self._add(line, "empty-href", "#")
            elif href.startswith("#"):
                pass
            else:
                self._add(line, "href", href)

        if tag == "path" and self._stack:
            self._stack[-1].paths.append(attr_map.get("d", ""))

        if tag in VOID_ELEMENTS:
            return

        has_handler = has_onclick or (tag == "a" and bool(href) and href.strip() != "#")
        self._stack.append(_Open(tag, attr_map, line, has_handler))

    def handle_startendtag(self, tag, attrs):
        if tag == "path":
            if self._stack:
                self._stack[-1].paths.append(dict(attrs).get("d") or "")
            return
        self.handle_starttag(tag, attrs)
        if tag not in VOID_ELEMENTS and self._stack and self._stack[-1].tag == tag:
            self._close(self._stack.pop())

    def handle_endtag(self, tag):
        if not any(o.tag == tag for o in self._stack):
            return
        while self._stack:
            opened = self._stack.pop()
            self._close(opened)
            if opened.tag == tag:
                break

    def handle_data(self, data):
        if self._stack and data.strip():
            for o in self._stack:
                o.text.append(data)

    def _close(self, opened: _Open) -> None:
        text = "".join(opened.text)
        # svg <path> children propagate to the nearest enclosing element
        if opened.tag == "svg" and self._stack:
            self._stack[-1].paths.extend(opened.paths)

        if opened.tag == "button" and not opened.has_handler:
            if opened.attrs.get("type", "").lower() == "submit":
                return
            if self._inside_handler():
                return
            kind = (
                "close-button-no-onclick"
                if _looks_like_close(opened.attrs, text, opened.paths)
                else "button-no-onclick"
            )
            self._add(opened.line, kind, detail=" ".join(text.split())[:40])
            return

        if opened.tag in ("div", "span") and not opened.has_handler:
            if self._inside_handler():
                return
            if opened.attrs.get("aria-hidden") == "true" or "pointer-events-none" in opened.attrs.get("class", ""):
                return
            # Only small leaf wrappers count as icons
            if len(text) > 8 or any(c in opened.attrs.get("class", "") for c in ("w-full", "h-full", "flex-col")):
                return
            if _looks_like_close({}, text, opened.paths):
                self._add(opened.line, "close-icon-no-onclick")


def extract_clickable_elements(content: str, file: str) -> List[ClickableElement]:
    parser = _ClickableParser(file)
    parser.feed(content)
    parser.close()
    # Flush anything left open by malformed markup
    while parser._stack:
        parser._close(parser._stack.pop())
    return sorted(parser.elements, key=lambda e: e.line)


# ---------------------------------------------------------------------------
# Target resolution
# ---------------------------------------------------------------------------


def resolve_target(target: str, source: Path, known_names: Set[str]) -> Optional[str]:
    """Return how the target resolved ("external", "file", "matched"), or None."""
    if target.startswith(EXTERNAL_PREFIXES):
        return "external"
    path_part = unquote(urlsplit(target).path)
    if not path_part:
        return None
    candidate = (source.parent / path_part).resolve()
    if candidate.is_file():
        return "file"
    if Path(path_part).name in known_names:
        return "matched"
    return None


@dataclass
class NavigationReport:
    elements: List[ClickableElement] = field(default_factory=list)
    screens_checked: int = 0

    @property
    def total(self) -> int:
        return len(self.elements)

    @property
    def valid(self) -> int:
        return sum(1 for e in self.elements if e.valid)

    @property
    def coverage(self) -> float:
        if not self.elements:
            return 100.0
        return round(self.valid * 100.0 / self.total, 1)

    @property
    def issues(self) -> List[ClickableElement]:
        return [e for e in self.elements if not e.valid]


class NavigationValidator:
    """Measure the share of clickable elements with a resolvable target."""

    def __init__(self, project_dir: Path, threshold: Optional[float] = None):
        self.layout = ProjectLayout(project_dir)
        self.threshold = settings.CAPTURE_COVERAGE_THRESHOLD if threshold is None else threshold

    def run(self) -> NavigationReport:
        report = NavigationReport()
        screens = [s for p in self.layout.profiles for s in self.layout.screens(p)]
        known = {s.path.name for s in screens}
        known.update(p.name for p in self.layout.aggregate_files() if p.is_file())

        for screen in screens:
            rel = self.layout.rel(screen.path)
            content = self.layout.read_text(screen.path)
            report.screens_checked += 1

            if "notify-parent.js" not in content:
                report.elements.append(ClickableElement(rel, 0, "missing-notify-parent"))

            for element in extract_clickable_elements(content, rel):
                if element.is_issue:
                    element.detail = element.detail or ISSUE_KINDS[element.kind]
                elif element.kind == "script-handler":
                    element.valid = True
                else:
                    how = resolve_target(element.target or "", screen.path, known)
                    element.valid = how is not None
                    if not element.valid:
                        element.detail = f"Target not found: {element.target}"
                report.elements.append(element)

        logger.info(
            f"Navigation: {report.valid}/{report.total} elements valid "
            f"({report.coverage}%) across {report.screens_checked} screens"
        )
        return report

    def validate(self, report: Optional[NavigationReport] = None) -> ValidationResult:
        report = report or self.run()
        checks = [
            CheckResult(
                name="navigation: coverage",
                passed=report.coverage >= self.threshold,
                detail=(
                    f"{report.coverage}% ({report.valid}/{report.total} elements, "
                    f"threshold {self.threshold:g}%)"
                ),
            )
        ]
        for e in report.issues:
            checks.append(CheckResult(
                name=f"navigation: {e.file}:{e.line}",
                passed=False,
                detail=f"[{e.kind}] {e.detail}",
            ))
        return ValidationResult.from_checks(checks)

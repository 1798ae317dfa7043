"""Overview counter truthfulness.

Ground truth is counted from screen files on disk; displayed counters are
read from the overview artifact through ``extract_displayed_counters``.
Every mismatch is a hard failure naming the field, the displayed value and
the expected value. Expected coverage is recomputed here (100 if any
wide-profile screen exists, else 0) rather than trusted from any stored
value.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

from ..errors import StandardsNotFoundError
from ..layout import IPAD, IPHONE, ProjectLayout
from ..models import CheckResult, DisplayedCounters, ScreenInventory, ValidationResult
from ..standards import ReferenceStandard, load_standard

logger = logging.getLogger("uiflow.validators.index_data")

# ---------------------------------------------------------------------------
# Counter extraction
# ---------------------------------------------------------------------------

SUMMARY_ISLAND_RE = re.compile(
    r'<script[^>]*\bid=["\']uiflow-summary["\'][^>]*>(.*?)</script>',
    re.DOTALL | re.IGNORECASE,
)

_COVERAGE_PATTERNS = [
    re.compile(r'id="coverage-rate"[^>]*>\s*(\d+)\s*%?', re.IGNORECASE),
    re.compile(r"UI/UX (?:coverage|覆蓋率)</p>\s*<p[^>]*>(\d+)%</p>", re.DOTALL | re.IGNORECASE),
    re.compile(r"font-bold[^>]*text-green[^>]*>(\d+)%"),
]
_IPAD_PATTERNS = [
    re.compile(r'id="ipad-count"[^>]*>\s*(\d+)', re.IGNORECASE),
    re.compile(r">iPad</p>\s*<p[^>]*>(\d+)</p>", re.DOTALL),
]
_IPHONE_PATTERNS = [
    re.compile(r'id="iphone-count"[^>]*>\s*(\d+)', re.IGNORECASE),
    re.compile(r">iPhone</p>\s*<p[^>]*>(\d+)</p>", re.DOTALL),
]
MODULE_BADGE_RE = re.compile(r"\b([A-Z][A-Z0-9]+)\s*\((\d+)\)")
_PERCENT_INT_RE = re.compile(r"\s*(\d+)\s*%?\s*")


def _first_int(patterns: List[re.Pattern], content: str) -> Optional[int]:
    for pattern in patterns:
        m = pattern.search(content)
        if m:
            return int(m.group(1))
    return None


def _badge_pattern(modules: Optional[Iterable[str]]) -> re.Pattern:
    if modules is None:
        return MODULE_BADGE_RE
    ids = sorted({m.upper() for m in modules}, key=lambda m: (-len(m), m))
    if not ids:
        return re.compile(r"(?!)")
    return re.compile(r"\b(" + "|".join(re.escape(m) for m in ids) + r")\s*\((\d+)\)")


def _as_count(value: Any) -> Optional[int]:
    """Coerce an island value to a non-negative int; None when it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    if isinstance(value, str):
        m = _PERCENT_INT_RE.fullmatch(value)
        if m:
            return int(m.group(1))
    return None


def _from_summary_island(content: str) -> Optional[DisplayedCounters]:
    """Counters from the summary island, or None when absent or malformed."""
    m = SUMMARY_ISLAND_RE.search(content)
    if not m:
        return None
    try:
        data = json.loads(m.group(1))
    except json.JSONDecodeError:
        logger.warning("uiflow-summary island is not valid JSON; falling back to markup")
        return None
    if not isinstance(data, dict):
        logger.warning("uiflow-summary island is not a JSON object; falling back to markup")
        return None

    fields: Dict[str, Optional[int]] = {}
    for key in ("coverage", "ipad_total", "iphone_total"):
        raw = data.get(key)
        fields[key] = None if raw is None else _as_count(raw)
        if raw is not None and fields[key] is None:
            logger.warning(f"uiflow-summary island: invalid {key} {raw!r}; falling back to markup")
            return None

    raw_modules = data.get("modules") or {}
    if not isinstance(raw_modules, dict):
        logger.warning("uiflow-summary island: modules is not an object; falling back to markup")
        return None
    modules: Dict[str, int] = {}
    for name, raw in raw_modules.items():
        count = _as_count(raw)
        if count is None:
            logger.warning(f"uiflow-summary island: invalid count for {name} {raw!r}; falling back to markup")
            return None
        modules[str(name).upper()] = count

    return DisplayedCounters(modules=modules, source="summary-island", **fields)


def extract_displayed_counters(content: str, modules: Optional[Iterable[str]] = None) -> DisplayedCounters:
    """Read the counters an overview artifact displays.

    Prefers the typed ``<script type="application/json" id="uiflow-summary">``
    island the generator embeds; falls back to targeted markup patterns.
    ``modules`` restricts ``MODULE (n)`` badge matching to those module ids;
    without it any upper-case word followed by a count is taken as a badge.
    """
    island = _from_summary_island(content)
    if island is not None:
        return island

    badges: Dict[str, int] = {}
    for m in _badge_pattern(modules).finditer(content):
        badges.setdefault(m.group(1), int(m.group(2)))

    counters = DisplayedCounters(
        coverage=_first_int(_COVERAGE_PATTERNS, content),
        ipad_total=_first_int(_IPAD_PATTERNS, content),
        iphone_total=_first_int(_IPHONE_PATTERNS, content),
        modules=badges,
    )
    found = (
        counters.coverage is not None
        or counters.ipad_total is not None
        or counters.iphone_total is not None
        or bool(badges)
    )
    counters.source = "markup" if found else "none"
    return counters


def count_inventory(layout: ProjectLayout) -> ScreenInventory:
    return ScreenInventory(
        modules=layout.module_counts(),
        ipad_total=len(layout.screens(IPAD.name)),
        iphone_total=len(layout.screens(IPHONE.name)),
    )


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


def _field_check(field: str, displayed: Optional[int], expected: int, unit: str = "") -> CheckResult:
    if displayed is None:
        return CheckResult(
            name=f"index-data: {field}",
            passed=False,
            detail=f"{field} not displayed in index.html (expected {expected}{unit})",
        )
    if displayed == expected:
        return CheckResult(
            name=f"index-data: {field}",
            passed=True,
            detail=f"{field} = {expected}{unit}",
        )
    return CheckResult(
        name=f"index-data: {field}",
        passed=False,
        detail=(
            f"{field} mismatch: index.html displays {displayed}{unit}, "
            f"expected {expected}{unit}"
        ),
    )


class IndexDataValidator:
    """Diff the overview's displayed counters against the screens on disk."""

    def __init__(self, project_dir: Path, standard: Optional[ReferenceStandard] = None):
        self.layout = ProjectLayout(project_dir)
        self.standard = standard
        self.inventory: Optional[ScreenInventory] = None
        self.displayed: Optional[DisplayedCounters] = None

    def known_modules(self, inventory: ScreenInventory) -> Set[str]:
        """Module ids a badge may name: modules on disk plus the standard's color table."""
        known = set(inventory.modules)
        standard = self.standard
        if standard is None:
            try:
                standard, _ = load_standard(self.layout.root)
            except StandardsNotFoundError:
                logger.debug("No reference standard; badges limited to modules on disk")
        if standard is not None:
            known.update(m.upper() for m in standard.module_colors)
        return known

    def validate(self) -> ValidationResult:
        self.inventory = count_inventory(self.layout)
        overview = self.layout.overview
        if not overview.is_file():
            return ValidationResult.from_checks([
                CheckResult(
                    name="index-data: overview",
                    passed=False,
                    detail="index.html missing",
                )
            ])

        self.displayed = extract_displayed_counters(
            self.layout.read_text(overview), modules=self.known_modules(self.inventory)
        )
        return ValidationResult.from_checks(self.diff(self.inventory, self.displayed))

    @staticmethod
    def diff(inventory: ScreenInventory, displayed: DisplayedCounters) -> List[CheckResult]:
        checks = [
            _field_check("coverage", displayed.coverage, inventory.expected_coverage, "%"),
            _field_check("ipad_total", displayed.ipad_total, inventory.ipad_total),
            _field_check("iphone_total", displayed.iphone_total, inventory.iphone_total),
        ]

        for module, actual in sorted(inventory.modules.items()):
            shown = displayed.modules.get(module)
            if shown is None:
                checks.append(CheckResult(
                    name=f"index-data: module {module}",
                    passed=False,
                    detail=f"{module} has {actual} screens but no badge in index.html",
                ))
            else:
                checks.append(_field_check(f"module {module}", shown, actual))

        # Badges for modules with nothing on disk must read 0
        for module, shown in sorted(displayed.modules.items()):
            if module in inventory.modules:
                continue
            checks.append(_field_check(f"module {module}", shown, 0))

        return checks

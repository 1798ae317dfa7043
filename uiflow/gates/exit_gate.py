"""Per-phase exit validation.

Each phase registers its own rule set with ``@exit_rules(phase_id)``. A rule
set is a function ``(ctx) -> List[CheckResult]`` over the filesystem and the
workspace document; rules never write anything. The validator reduces the
checks to one ValidationResult (``passed`` = AND of error-severity checks).

Checks that depend on a required aggregate fail closed: when the file is
missing they are still reported, as failed checks with a "skipped:" detail.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .. import settings
from ..capture.ledger import ErrorLedgerStore
from ..config import COMPLETION_REPORT_FILE, VALIDATION_REPORT_FILE, WORKSPACE_DIR
from ..errors import StandardsNotFoundError
from ..layout import IPAD, IPHONE, ProjectLayout
from ..models import CheckResult, ValidationResult
from ..phases import (
    BUILD_DIAGRAMS,
    CAPTURE_SCREENSHOTS,
    FEEDBACK_WRITEBACK,
    FINALIZE,
    GENERATE,
    INIT,
    PHASE_ORDER,
    VALIDATE_NAVIGATION,
    normalize_phase,
)
from ..standards import ReferenceStandard
from ..state import WorkspaceState
from ..validators import (
    ConsistencyValidator,
    IframeSrcValidator,
    IndexDataValidator,
    NavigationValidator,
    TemplateVariableValidator,
)
from ..validators.navigation import extract_clickable_elements

logger = logging.getLogger("uiflow.gates.exit_gate")

MODULE_CARD_RE = re.compile(r"class=\"[^\"]*\bmodule-card(?![\w-])")
SCREEN_ITEM_RE = re.compile(r"class=\"[^\"]*\bscreen-item(?![\w-])")
OPEN_SCREEN_RE = re.compile(r"onclick=\"(?:openScreen|loadScreen)\(")
SDD_HEADING_RE = re.compile(r"^#### SCR-", re.MULTILINE)
SRS_SCREEN_REFS_RE = re.compile(r"Screen References|SCR 對照|畫面參考")


@dataclass
class GateContext:
    """Everything a rule set may read."""
    layout: ProjectLayout
    state: WorkspaceState
    standard: Optional[ReferenceStandard] = None
    cache: Dict[str, object] = field(default_factory=dict)

    @property
    def root(self) -> Path:
        return self.layout.root

    def counts(self) -> Dict[str, int]:
        if "counts" not in self.cache:
            self.cache["counts"] = self.layout.screen_counts()
        return self.cache["counts"]  # type: ignore[return-value]


RuleSet = Callable[[GateContext], List[CheckResult]]

# Phase id -> rule set
EXIT_RULES: Dict[str, RuleSet] = {}


def exit_rules(phase_id: str) -> Callable[[RuleSet], RuleSet]:
    """Register the rule set that gates leaving ``phase_id``."""

    def decorator(fn: RuleSet) -> RuleSet:
        EXIT_RULES[normalize_phase(phase_id)] = fn
        return fn

    return decorator


# ---------------------------------------------------------------------------
# Shared checks
# ---------------------------------------------------------------------------


def check(name: str, passed: bool, detail: str = "", severity: str = "error") -> CheckResult:
    return CheckResult(name=name, passed=passed, detail=detail, severity=severity)


def skipped(name: str, missing: List[str]) -> CheckResult:
    return check(name, False, f"skipped: required file missing ({', '.join(missing)})")


def parity_check(ctx: GateContext) -> CheckResult:
    counts = ctx.counts()
    ipad, iphone = counts[IPAD.name], counts[IPHONE.name]
    if ipad == 0 or iphone == 0:
        return check("parity", False, f"ipad={ipad}, iphone={iphone}: both profiles must be non-empty")
    if ipad != iphone:
        return check("parity", False, f"ipad={ipad}, iphone={iphone}: counts differ")
    return check("parity", True, f"ipad={ipad}, iphone={iphone}")


def file_checks(ctx: GateContext, rels: List[str], severity: str = "error") -> List[CheckResult]:
    checks = []
    for rel in rels:
        path = ctx.root / rel
        if path.is_file() and path.stat().st_size > 0:
            checks.append(check(f"file: {rel}", True, "exists", severity))
        elif path.is_file():
            checks.append(check(f"file: {rel}", False, "empty", severity))
        else:
            checks.append(check(f"file: {rel}", False, "missing", severity))
    return checks


def missing_files(ctx: GateContext, rels: List[str]) -> List[str]:
    return [r for r in rels if not (ctx.root / r).is_file()]


def summarize(name: str, result: ValidationResult, limit: int = 10) -> CheckResult:
    """Collapse a sub-validator result into one check."""
    if result.passed:
        detail = "passed"
        if result.warning_count:
            detail += f" ({result.warning_count} warnings)"
        return check(name, True, detail)
    failed = result.failed_checks
    items = [f"{c.name}: {c.detail}" if c.detail else c.name for c in failed[:limit]]
    if len(failed) > limit:
        items.append(f"(+{len(failed) - limit} more)")
    return check(name, False, "; ".join(items))


def consistency_check(ctx: GateContext) -> CheckResult:
    try:
        validator = ConsistencyValidator(ctx.root, standard=ctx.standard)
    except StandardsNotFoundError as e:
        return check("consistency", False, str(e))
    report = validator.validate()
    return summarize("consistency", report.to_validation_result())


def aggregate_rels(ctx: GateContext) -> List[str]:
    return [ctx.layout.rel(p) for p in ctx.layout.aggregate_files()]


# ---------------------------------------------------------------------------
# Rule sets
# ---------------------------------------------------------------------------


@exit_rules(INIT)
def init_rules(ctx: GateContext) -> List[CheckResult]:
    checks = file_checks(ctx, ["index.html", "device-preview.html"])
    checks += file_checks(ctx, ["shared/project-theme.css", "shared/notify-parent.js"], "warning")

    root_html = sorted(ctx.root.glob("*.html"))
    tv = TemplateVariableValidator(ctx.root, files=root_html)
    checks.append(summarize("template-variables (root html)", tv.validate()))

    checks.append(check(
        "workspace document",
        ctx.state.exists(),
        "workspace/current-process.json " + ("exists" if ctx.state.exists() else "missing"),
    ))
    subdirs = [d for d in ("context", "state") if not (ctx.root / WORKSPACE_DIR / d).is_dir()]
    checks.append(check(
        "workspace subdirectories",
        not subdirs,
        "present" if not subdirs else f"missing: {', '.join(subdirs)}",
        "warning",
    ))
    return checks


@exit_rules(GENERATE)
def generate_rules(ctx: GateContext) -> List[CheckResult]:
    layout = ctx.layout
    checks = [parity_check(ctx)]

    empty, alerts = [], []
    for profile in layout.profiles:
        for screen in layout.screens(profile):
            rel = layout.rel(screen.path)
            for e in extract_clickable_elements(layout.read_text(screen.path), rel):
                if e.kind == "empty-onclick":
                    empty.append(f"{rel}:{e.line}")
                elif e.kind == "alert-onclick":
                    alerts.append(f"{rel}:{e.line}")
    checks.append(check(
        "click handlers: empty",
        not empty,
        f"{len(empty)} empty onclick handlers" + (f": {', '.join(empty[:10])}" if empty else ""),
    ))
    checks.append(check(
        "click handlers: alert",
        not alerts,
        f"{len(alerts)} alert() placeholder handlers" + (f": {', '.join(alerts[:10])}" if alerts else ""),
    ))

    required = aggregate_rels(ctx)
    checks += file_checks(ctx, required)

    overview_rel = layout.rel(layout.overview)
    if not layout.overview.is_file():
        checks.append(skipped("overview placeholder", [overview_rel]))
        checks.append(skipped("index-data", [overview_rel]))
        checks.append(skipped("module cards", [overview_rel]))
    else:
        content = layout.read_text(layout.overview)
        placeholder = settings.OVERVIEW_PLACEHOLDER_TEXT
        checks.append(check(
            "overview placeholder",
            placeholder not in content,
            "screen list rendered" if placeholder not in content
            else f"index.html still shows '{placeholder}'",
        ))
        checks.append(summarize("index-data", IndexDataValidator(ctx.root).validate()))

        cards = len(MODULE_CARD_RE.findall(content))
        modules = layout.modules()
        checks.append(check(
            "module cards",
            cards >= len(modules),
            f"{cards} module cards, {len(modules)} modules on disk",
        ))

    checks.append(summarize("template-variables", TemplateVariableValidator(ctx.root).validate()))

    if layout.device_preview.is_file():
        items = len(SCREEN_ITEM_RE.findall(layout.read_text(layout.device_preview)))
        expected = ctx.counts()[IPAD.name]
        checks.append(check(
            "device-preview sidebar",
            items >= expected,
            f"{items} sidebar items, {expected} screens",
            "warning",
        ))
    return checks


@exit_rules(VALIDATE_NAVIGATION)
def validate_navigation_rules(ctx: GateContext) -> List[CheckResult]:
    layout = ctx.layout
    nav = NavigationValidator(ctx.root)
    report = nav.run()
    checks = [summarize("navigation coverage", nav.validate(report))]
    checks.append(parity_check(ctx))

    preview_rel = layout.rel(layout.device_preview)
    if not layout.device_preview.is_file():
        checks.append(skipped("device-preview sidebar", [preview_rel]))
    else:
        items = len(SCREEN_ITEM_RE.findall(layout.read_text(layout.device_preview)))
        expected = ctx.counts()[IPAD.name]
        checks.append(check(
            "device-preview sidebar",
            items == expected,
            f"{items} sidebar items, {expected} screens",
        ))

    checks.append(consistency_check(ctx))

    report_exists = (ctx.root / VALIDATION_REPORT_FILE).is_file()
    checks.append(check(
        "validation report",
        report_exists,
        VALIDATION_REPORT_FILE + (" exists" if report_exists else " missing (run post-generation-gate)"),
        "warning",
    ))
    return checks


@exit_rules(BUILD_DIAGRAMS)
def build_diagrams_rules(ctx: GateContext) -> List[CheckResult]:
    layout = ctx.layout
    diagrams = [layout.profiles[p].diagram_file for p in layout.profiles]
    checks = file_checks(ctx, diagrams)

    expected = ctx.counts()[IPAD.name]
    for profile in layout.profiles:
        rel = layout.profiles[profile].diagram_file
        path = ctx.root / rel
        if not path.is_file():
            checks.append(skipped(f"diagram cards ({profile})", [rel]))
            continue
        cards = len(OPEN_SCREEN_RE.findall(layout.read_text(path)))
        checks.append(check(
            f"diagram cards ({profile})",
            cards == expected,
            f"{cards} screen cards, {expected} screens",
        ))

    missing = missing_files(ctx, diagrams)
    if missing:
        checks.append(skipped("iframe-src", missing))
        checks.append(skipped("consistency", missing))
    else:
        checks.append(summarize("iframe-src", IframeSrcValidator(ctx.root).validate()))
        checks.append(consistency_check(ctx))
    return checks


@exit_rules(CAPTURE_SCREENSHOTS)
def capture_screenshots_rules(ctx: GateContext) -> List[CheckResult]:
    layout = ctx.layout
    ledger = ErrorLedgerStore(ctx.root).load()
    checks = []

    for profile, prof in layout.profiles.items():
        exists = (ctx.root / prof.screenshot_dir).is_dir()
        checks.append(check(
            f"screenshot dir ({profile})",
            exists,
            prof.screenshot_dir + ("/ exists" if exists else "/ missing"),
            "warning",
        ))

    counts = ctx.counts()
    for profile in layout.profiles:
        have = layout.screenshot_count(profile)
        expected = counts[profile]
        checks.append(check(
            f"screenshots ({profile})",
            have >= expected,
            f"{have}/{expected} snapshots",
            "error" if ledger.errors else "warning",
        ))

    if ledger.errors:
        failed = ", ".join(f"{e.profile}/{e.screen_id}" for e in ledger.errors[:10])
        checks.append(check(
            "error ledger",
            False,
            f"{len(ledger.errors)} failed captures ({failed}); run: uiflow capture --retry-failed",
        ))
    else:
        checks.append(check("error ledger", True, "no failed captures"))
    return checks


def find_document_root(project_dir: Path) -> Optional[Path]:
    """Directory holding 01-requirements/ and 02-design/ (parent or project itself)."""
    for candidate in (project_dir.parent, project_dir):
        if (candidate / "02-design").is_dir():
            return candidate
    return None


def _count_lines(pattern: str, text: str) -> int:
    regex = re.compile(pattern)
    return sum(1 for line in text.splitlines() if regex.search(line))


@exit_rules(FEEDBACK_WRITEBACK)
def feedback_writeback_rules(ctx: GateContext) -> List[CheckResult]:
    doc_root = find_document_root(ctx.root)
    if doc_root is None:
        return [check("document root", False, "02-design/ not found next to or inside the project")]

    checks = [check("document root", True, str(doc_root))]

    sdd_files = sorted((doc_root / "02-design").glob("SDD-*.md"))
    if not sdd_files:
        checks.append(check("SDD", False, "02-design/SDD-*.md not found"))
    else:
        text = sdd_files[0].read_text(encoding="utf-8")
        screens = len(SDD_HEADING_RE.findall(text))
        for profile, severity in ((IPAD.name, "error"), (IPHONE.name, "warning")):
            refs = _count_lines(rf"images/{profile}/SCR-.*\.png", text)
            checks.append(check(
                f"SDD image refs ({profile})",
                refs == screens and refs > 0,
                f"{refs} references, {screens} SCR sections in {sdd_files[0].name}",
                severity,
            ))

    srs_files = sorted((doc_root / "01-requirements").glob("SRS-*.md"))
    if not srs_files:
        checks.append(check("SRS", False, "01-requirements/SRS-*.md not found"))
    else:
        text = srs_files[0].read_text(encoding="utf-8")
        found = bool(SRS_SCREEN_REFS_RE.search(text))
        checks.append(check(
            "SRS screen references",
            found,
            f"{srs_files[0].name}: " + ("section present" if found else "no Screen References section"),
        ))

    for profile in (IPAD.name, IPHONE.name):
        images = doc_root / "02-design" / "images" / profile
        n = len(list(images.glob("*.png"))) if images.is_dir() else 0
        checks.append(check(
            f"design images ({profile})",
            n > 0,
            f"{n} images in 02-design/images/{profile}",
            "warning",
        ))
    return checks


@exit_rules(FINALIZE)
def finalize_rules(ctx: GateContext) -> List[CheckResult]:
    doc = ctx.state.document
    earlier = PHASE_ORDER[:PHASE_ORDER.index(FINALIZE)]
    open_phases = [
        p for p in earlier
        if doc.progress.get(p) != "completed"
        or p not in doc.validation_state
        or not doc.validation_state[p].passed
    ]
    regressed = [p for p in ctx.state.failed_rechecks() if p in earlier]
    problems = []
    if open_phases:
        problems.append(f"not completed: {', '.join(open_phases)}")
    if regressed:
        problems.append(f"latest exit gate failed: {', '.join(regressed)}")
    checks = [check(
        "earlier phases completed",
        not problems,
        "; ".join(problems) or "all completed",
    )]
    checks.append(parity_check(ctx))
    checks += file_checks(ctx, aggregate_rels(ctx))

    report = (ctx.root / COMPLETION_REPORT_FILE).is_file()
    checks.append(check(
        "completion report",
        report,
        COMPLETION_REPORT_FILE + (" exists" if report else " missing (written on finalize transition)"),
        "warning",
    ))
    return checks


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class ExitValidator:
    """Run a phase's exit rule set and reduce it to one ValidationResult."""

    def __init__(
        self,
        project_dir: Path,
        state: Optional[WorkspaceState] = None,
        standard: Optional[ReferenceStandard] = None,
    ):
        self.layout = ProjectLayout(project_dir)
        self.state = state if state is not None else WorkspaceState(self.layout.root)
        self.standard = standard

    def validate(self, phase_id: str) -> ValidationResult:
        phase_id = normalize_phase(phase_id)
        ctx = GateContext(layout=self.layout, state=self.state, standard=self.standard)
        checks = EXIT_RULES[phase_id](ctx)
        result = ValidationResult.from_checks(checks, phase_id=phase_id)
        logger.info(
            f"Exit gate {phase_id}: {'PASSED' if result.passed else 'BLOCKED'} "
            f"({result.error_count} errors, {result.warning_count} warnings)"
        )
        return result

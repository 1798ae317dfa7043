"""Human-readable reports and per-check JSON report files.

Every CLI check writes its machine-readable result to
workspace/reports/<check>.json and prints a summary line with pass/fail/warn
counts followed by itemized failures.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

from pydantic import BaseModel

from .config import REPORTS_DIR
from .models import (
    CaptureFailure,
    CaptureRunReport,
    ConsistencyReport,
    PostGenerationReport,
    TransitionOutcome,
    ValidationResult,
)
from .storage import atomic_write_json

RULE = "=" * 60


def write_report(project_dir: Path, check: str, payload: BaseModel) -> Path:
    path = Path(project_dir) / REPORTS_DIR / f"{check}.json"
    atomic_write_json(path, payload.model_dump(mode="json"))
    return path


def _header(title: str) -> List[str]:
    return [RULE, f"  {title}", RULE]


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_result(title: str, result: ValidationResult, verbose: bool = False) -> str:
    lines = _header(title)
    passed = sum(1 for c in result.checks if c.passed)
    status = "PASSED" if result.passed else "FAILED"
    lines.append(
        f"{status}: {passed} passed, {result.error_count} failed, {result.warning_count} warnings"
    )
    if verbose:
        lines += [f"  [ok]   {c.name}" + (f": {c.detail}" if c.detail else "") for c in result.checks if c.passed]
    lines += [f"  [FAIL] {c.name}: {c.detail}" for c in result.failed_checks]
    lines += [f"  [warn] {c.name}: {c.detail}" for c in result.warnings]
    return "\n".join(lines)


def format_consistency(report: ConsistencyReport) -> str:
    lines = _header(f"Consistency (standard v{report.standard_version})")
    if report.standard_source:
        lines.append(f"Standard: {report.standard_source}")
    lines.append(
        f"{'PASSED' if report.passed else 'FAILED'}: {report.count('pass')} passed, "
        f"{report.count('fail')} failed, {report.count('warn')} warnings"
    )
    for category, findings in report.by_category().items():
        bad = [f for f in findings if f.status != "pass"]
        if not bad:
            continue
        lines.append(f"{category}:")
        lines += [f"  [{'FAIL' if f.status == 'fail' else 'warn'}] {f.message}" for f in bad]
    return "\n".join(lines)


def format_capture(report: CaptureRunReport) -> str:
    lines = _header(f"Capture ({report.mode})")
    if report.blocked:
        lines.append(f"BLOCKED: {report.blocked_reason}")
        lines.append("Override with --allow-incomplete (not recommended)")
        return "\n".join(lines)
    lines.append(
        f"Attempted: {report.attempted}  Captured: {report.captured}  "
        f"Failed: {report.failed}  Missing sources: {len(report.missing_sources)}"
    )
    lines += [f"  [missing] {m}" for m in report.missing_sources]
    for o in report.outcomes:
        if isinstance(o, CaptureFailure):
            lines.append(f"  [FAIL] {o.profile}/{o.screen_id} after {o.attempts} attempts: {o.error}")
    if report.failed or report.missing_sources:
        lines.append("Fix the failures, then run: uiflow capture --retry-failed")
    return "\n".join(lines)


def format_post_generation(report: PostGenerationReport) -> str:
    lines = _header(f"Post-Generation Gate: {report.action}")
    for step in report.results:
        lines.append(f"  [{'ok' if step.success else 'FAIL'}] {step.name}")
        lines += [f"      missing: {m}" for m in step.missing]
        lines += [f"      {f}" for f in step.failures]
    return "\n".join(lines)


def format_transition(outcome: TransitionOutcome) -> str:
    if not outcome.advanced:
        lines = [format_result(f"Exit gate: {outcome.from_phase}", outcome.validation)] if outcome.validation else []
        lines.append(outcome.guidance)
        return "\n".join(lines)
    lines = _header(f"Transition: {outcome.from_phase} -> {outcome.to_phase or 'done'}")
    if outcome.summary:
        lines.append(outcome.summary.text)
        lines.append("")
    lines.append(outcome.guidance)
    return "\n".join(lines)


def format_status(status: Dict[str, Any]) -> str:
    lines = _header(f"Status: {status['project_name']}")
    lines.append(f"Current phase: {status['current_phase'] or 'done'}")
    for phase_id, st in status["progress"].items():
        lines.append(f"  {phase_id:<22} {st}")
    lines.append(
        f"Screens: iPad {status['ipad_count']}, iPhone {status['iphone_count']} "
        f"({', '.join(status['modules']) or 'no modules'})"
    )
    lines.append(
        f"Screenshots: iPad {status['ipad_screenshots']}, iPhone {status['iphone_screenshots']}"
    )
    if status.get("ledger_errors"):
        lines.append(f"Error ledger: {status['ledger_errors']} entries")
    if status.get("last_summary"):
        lines += ["", "Last summary:", status["last_summary"]]
    return "\n".join(lines)

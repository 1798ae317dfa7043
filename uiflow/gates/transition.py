"""Phase transition coordinator.

Transition protocol for ``transition(from_phase, to_phase)``:

1. ``from_phase`` must be the current phase and ``to_phase`` its successor
   (``done`` after finalize); anything else raises TransitionError and
   leaves the workspace untouched.
2. Run the exit gate for ``from_phase``. On failure only the failing
   ValidationResult is recorded and the transition is aborted.
3. On success render the PhaseSummary, write it to
   workspace/phase-summary.md and append it to workspace/phase-history.md.
4. Advance through WorkspaceState.record_validation.
5. Return operator guidance for the next phase.

The summary-and-persist step lets an interrupted run resume from the last
summary instead of replaying the history.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ..capture.ledger import ErrorLedgerStore
from ..config import COMPLETION_REPORT_FILE, PHASE_HISTORY_FILE, PHASE_SUMMARY_FILE
from ..errors import TransitionError
from ..layout import IPAD, IPHONE, ProjectLayout
from ..models import PhaseSummary, TransitionOutcome, ValidationResult, utc_now
from ..phases import FINALIZE, PHASE_DEFINITIONS, next_phase, normalize_phase
from ..state import WorkspaceState
from ..storage import append_text, atomic_write_text
from .exit_gate import ExitValidator

logger = logging.getLogger("uiflow.gates.transition")

# Pseudo phase after finalize
DONE = "done"


class NodeTransitionCoordinator:
    """Gate-then-advance state machine over the fixed phase order."""

    def __init__(
        self,
        project_dir: Path,
        state: Optional[WorkspaceState] = None,
        validator: Optional[ExitValidator] = None,
    ):
        self.layout = ProjectLayout(project_dir)
        self.state = state if state is not None else WorkspaceState(self.layout.root)
        self.validator = validator or ExitValidator(self.layout.root, state=self.state)

    # ------------------------------------------------------------------
    # Gate only
    # ------------------------------------------------------------------

    def exit_gate(self, phase_id: str) -> ValidationResult:
        """Run and record a phase's exit gate without advancing."""
        phase_id = normalize_phase(phase_id)
        result = self.validator.validate(phase_id)
        if self.state.exists():
            self.state.record_validation(phase_id, result, advance=False)
            self.state.save()
        return result

    # ------------------------------------------------------------------
    # Transition
    # ------------------------------------------------------------------

    def check_order(self, from_phase: str, to_phase: str) -> Tuple[str, Optional[str]]:
        """Validate the requested edge; returns canonical (from, to)."""
        src = normalize_phase(from_phase)
        dst = None if to_phase == DONE else normalize_phase(to_phase)

        current = self.state.document.current_process
        if current is None:
            raise TransitionError("Pipeline already finished; nothing to transition")
        if src != current:
            raise TransitionError(
                f"Cannot transition from '{src}': current phase is '{current}'"
            )
        expected = next_phase(src)
        if dst != expected:
            raise TransitionError(
                f"Invalid transition {src} -> {to_phase}: next phase is '{expected or DONE}'"
            )
        return src, dst

    def transition(self, from_phase: str, to_phase: str) -> TransitionOutcome:
        src, dst = self.check_order(from_phase, to_phase)
        logger.info(f"Transition requested: {src} -> {dst or DONE}")

        result = self.validator.validate(src)
        if not result.passed:
            self.state.record_validation(src, result)
            self.state.save()
            logger.warning(f"Transition blocked: exit gate {src} failed ({result.error_count} errors)")
            return TransitionOutcome(
                from_phase=src,
                to_phase=dst,
                advanced=False,
                validation=result,
                guidance=self.remediation(src, result),
                current_phase=self.state.document.current_process,
            )

        ctx = self.gather_context()
        summary = PhaseSummary(from_phase=src, to_phase=dst, text=self.render_summary(src, dst, ctx))
        self.persist_summary(summary)

        files_modified = [PHASE_SUMMARY_FILE, PHASE_HISTORY_FILE]
        if src == FINALIZE and self.write_completion_report(ctx):
            files_modified.append(COMPLETION_REPORT_FILE)

        self.state.record_validation(src, result, advance=True)
        self.state.update_context(
            screens_completed=ctx["ipad_count"],
            screens_total=ctx["ipad_count"],
            modules=ctx["modules"],
        )
        self.state.set_recovery_hints(
            last_action=f"Transitioned from {src} to {dst or DONE}",
            transition_timestamp=summary.timestamp,
            files_modified=files_modified,
        )
        self.state.save()

        logger.info(f"Transition complete: {src} -> {dst or DONE}")
        return TransitionOutcome(
            from_phase=src,
            to_phase=dst,
            advanced=True,
            validation=result,
            summary=summary,
            guidance=self.guidance(dst),
            current_phase=self.state.document.current_process,
        )

    # ------------------------------------------------------------------
    # Context and summaries
    # ------------------------------------------------------------------

    def gather_context(self) -> Dict[str, Any]:
        """Workspace context overlaid with counts introspected from disk."""
        ctx: Dict[str, Any] = dict(self.state.document.context)
        counts = self.layout.screen_counts()
        ctx.update(
            project_path=str(self.layout.root),
            ipad_count=counts[IPAD.name],
            iphone_count=counts[IPHONE.name],
            modules=self.layout.modules(),
            ipad_screenshots=self.layout.screenshot_count(IPAD.name),
            iphone_screenshots=self.layout.screenshot_count(IPHONE.name),
        )
        ctx.setdefault("project_name", self.layout.root.name)
        return ctx

    def render_summary(self, src: str, dst: Optional[str], ctx: Dict[str, Any]) -> str:
        definition = PHASE_DEFINITIONS[src]
        lines = [f"## Completed: {src} ({definition.name})", ""]
        lines += definition.summary(ctx)
        lines.append("")
        if dst is None:
            lines.append("## Next: done")
            lines.append(f"- Report: {COMPLETION_REPORT_FILE}")
        else:
            nxt = PHASE_DEFINITIONS[dst]
            lines.append(f"## Next: {dst} ({nxt.name})")
            lines.append(f"- Entry: {nxt.entry_file}")
            lines.append(f"- Action: {nxt.action}")
        return "\n".join(lines)

    def persist_summary(self, summary: PhaseSummary) -> None:
        root = self.layout.root
        atomic_write_text(root / PHASE_SUMMARY_FILE, summary.text + "\n")
        append_text(root / PHASE_HISTORY_FILE, f"\n---\n### {summary.timestamp}\n{summary.text}\n")

    def guidance(self, dst: Optional[str]) -> str:
        if dst is None:
            return (
                "Pipeline complete.\n"
                f"Report: {COMPLETION_REPORT_FILE}\n"
                f"History: {PHASE_HISTORY_FILE}"
            )
        nxt = PHASE_DEFINITIONS[dst]
        return "\n".join([
            f"NEXT PHASE: {dst} ({nxt.name})",
            f"1. Read: {nxt.entry_file}",
            "2. Plan: list the specific tasks for this phase",
            f"3. Execute: {nxt.action}",
            f"4. Validate: uiflow exit-gate {dst} {self.layout.root}",
            "",
            f"Saved to: {PHASE_SUMMARY_FILE}",
            f"History: {PHASE_HISTORY_FILE}",
        ])

    @staticmethod
    def remediation(src: str, result: ValidationResult) -> str:
        lines = [f"TRANSITION BLOCKED: exit gate {src} failed"]
        lines += [f"- {c.name}: {c.detail}" for c in result.failed_checks]
        lines.append(f"Fix the issues, then re-run: uiflow exit-gate {src}")
        return "\n".join(lines)

    def write_completion_report(self, ctx: Dict[str, Any]) -> bool:
        """Write ui-flow-completion-report.md unless it already exists."""
        path = self.layout.root / COMPLETION_REPORT_FILE
        if path.exists():
            return False
        text = "\n".join([
            f"# UI Flow Completion Report: {ctx.get('project_name', '')}",
            "",
            "## Statistics",
            f"- Total Screens: {ctx['ipad_count']}",
            f"- iPad Screens: {ctx['ipad_count']}",
            f"- iPhone Screens: {ctx['iphone_count']}",
            f"- Modules: {', '.join(ctx['modules']) or '(none)'}",
            "",
            "## Deliverables",
            "- [x] HTML Screen Prototypes",
            "- [x] UI Flow Diagram (iPad/iPhone)",
            "- [x] Navigation Validation",
            "- [x] Screenshots",
            "- [x] SDD/SRS Updated",
            "",
            f"Completed: {date.today().isoformat()} ({utc_now()})",
            "",
        ])
        atomic_write_text(path, text)
        logger.info(f"Wrote {COMPLETION_REPORT_FILE}")
        return True

    # ------------------------------------------------------------------
    # Status / recover
    # ------------------------------------------------------------------

    def status(self) -> Dict[str, Any]:
        """Reconcile the workspace context with the filesystem and report.

        Counts are re-derived from disk and stored back into the document
        (when one exists) so a resumed run starts from current numbers.
        """
        ctx = self.gather_context()
        doc = self.state.document
        if self.state.exists():
            self.state.update_context(
                ipad_count=ctx["ipad_count"],
                iphone_count=ctx["iphone_count"],
                modules=ctx["modules"],
                ipad_screenshots=ctx["ipad_screenshots"],
                iphone_screenshots=ctx["iphone_screenshots"],
            )
            self.state.save()

        summary_path = self.layout.root / PHASE_SUMMARY_FILE
        return {
            "project_name": ctx["project_name"],
            "project_path": ctx["project_path"],
            "workspace_exists": self.state.exists(),
            "current_phase": doc.current_process,
            "progress": dict(doc.progress),
            "ipad_count": ctx["ipad_count"],
            "iphone_count": ctx["iphone_count"],
            "modules": ctx["modules"],
            "ipad_screenshots": ctx["ipad_screenshots"],
            "iphone_screenshots": ctx["iphone_screenshots"],
            "ledger_errors": len(ErrorLedgerStore(self.layout.root).load().errors),
            "last_action": doc.recovery_hints.last_action,
            "last_summary": summary_path.read_text(encoding="utf-8").strip() if summary_path.is_file() else None,
        }

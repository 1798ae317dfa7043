"""Post-generation gate.

Runs after the aggregate artifacts are generated:
required files -> iframe src -> consistency -> navigation -> index data.
Missing required files stop the chain. The outcome is written to
workspace/validation-report.json with action PROCEED or BLOCKED.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from ..config import VALIDATION_REPORT_FILE
from ..errors import StandardsNotFoundError
from ..layout import ProjectLayout
from ..models import GateStep, PostGenerationReport, ValidationResult, utc_now
from ..standards import ReferenceStandard
from ..state import WorkspaceState
from ..storage import atomic_write_json
from ..validators import (
    ConsistencyValidator,
    IframeSrcValidator,
    IndexDataValidator,
    NavigationValidator,
)

logger = logging.getLogger("uiflow.gates.post_generation")


def _step(name: str, result: ValidationResult) -> GateStep:
    return GateStep(
        name=name,
        success=result.passed,
        error_count=result.error_count,
        warning_count=result.warning_count,
        failures=[f"{c.name}: {c.detail}" for c in result.failed_checks],
    )


class PostGenerationGate:
    def __init__(
        self,
        project_dir: Path,
        state: Optional[WorkspaceState] = None,
        standard: Optional[ReferenceStandard] = None,
    ):
        self.layout = ProjectLayout(project_dir)
        self.state = state if state is not None else WorkspaceState(self.layout.root)
        self.standard = standard

    def required_files(self) -> GateStep:
        missing = [self.layout.rel(p) for p in self.layout.aggregate_files() if not p.is_file()]
        return GateStep(name="Required Files Check", success=not missing, missing=missing)

    def run(self) -> PostGenerationReport:
        steps: List[GateStep] = [self.required_files()]

        if steps[0].success:
            root = self.layout.root
            steps.append(_step("iframe src Path Validation", IframeSrcValidator(root).validate()))
            try:
                consistency = ConsistencyValidator(root, standard=self.standard).validate()
                steps.append(_step("Consistency Validation", consistency.to_validation_result()))
            except StandardsNotFoundError as e:
                steps.append(GateStep(name="Consistency Validation", success=False, failures=[str(e)]))
            steps.append(_step("Navigation Validation", NavigationValidator(root).validate()))
            steps.append(_step("index.html Data Validation", IndexDataValidator(root).validate()))
        else:
            logger.error(f"Required files missing: {', '.join(steps[0].missing)}")

        passed = all(s.success for s in steps)
        report = PostGenerationReport(
            passed=passed,
            action="PROCEED" if passed else "BLOCKED",
            results=steps,
        )
        self._persist(report)
        return report

    def _persist(self, report: PostGenerationReport) -> None:
        atomic_write_json(self.layout.root / VALIDATION_REPORT_FILE, report.model_dump(mode="json"))

        if self.state.exists():
            self.state.update_context(
                validation_passed=report.passed,
                validation_time=report.timestamp,
            )
            self.state.set_recovery_hints(
                last_action=(
                    "Post-Generation Gate PASSED" if report.passed
                    else "Post-Generation Gate FAILED - BLOCKED"
                ) + f" at {utc_now()}",
            )
            self.state.save()
        logger.info(f"Post-generation gate: {report.action}")

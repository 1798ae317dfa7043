"""Pydantic models shared by the gates, validators, capture and API layers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

PhaseStatus = Literal["pending", "in_progress", "completed"]
Severity = Literal["error", "warning"]
FindingStatus = Literal["pass", "warn", "fail"]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Validation results
# ---------------------------------------------------------------------------


class CheckResult(BaseModel):
    """One independent check inside a validator run."""
    model_config = ConfigDict(frozen=True)

    name: str
    passed: bool
    detail: str = ""
    severity: Severity = "error"


class ValidationResult(BaseModel):
    """Reduced outcome of one validator invocation.

    ``passed`` is the AND of all error-severity checks; warning-severity
    checks are counted but never block.
    """
    model_config = ConfigDict(frozen=True)

    phase_id: Optional[str] = None
    passed: bool
    checks: List[CheckResult] = Field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0
    timestamp: str = Field(default_factory=utc_now)

    @classmethod
    def from_checks(
        cls,
        checks: List[CheckResult],
        phase_id: Optional[str] = None,
    ) -> "ValidationResult":
        errors = sum(1 for c in checks if not c.passed and c.severity == "error")
        warnings = sum(1 for c in checks if not c.passed and c.severity == "warning")
        return cls(
            phase_id=phase_id,
            passed=errors == 0,
            checks=list(checks),
            error_count=errors,
            warning_count=warnings,
        )

    @property
    def failed_checks(self) -> List[CheckResult]:
        return [c for c in self.checks if not c.passed and c.severity == "error"]

    @property
    def warnings(self) -> List[CheckResult]:
        return [c for c in self.checks if not c.passed and c.severity == "warning"]


# ---------------------------------------------------------------------------
# Workspace document (workspace/current-process.json)
# ---------------------------------------------------------------------------


class ValidationRecord(BaseModel):
    """validation_state[phase] entry as persisted on disk."""
    passed: bool
    timestamp: str
    checks: List[CheckResult] = Field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationRecord":
        return cls(
            passed=result.passed,
            timestamp=result.timestamp,
            checks=result.checks,
            error_count=result.error_count,
            warning_count=result.warning_count,
        )


class RecoveryHints(BaseModel):
    last_action: Optional[str] = None
    last_completed_phase: Optional[str] = None
    current_phase: Optional[str] = None
    transition_timestamp: Optional[str] = None
    pending_fixes: List[str] = Field(default_factory=list)
    files_modified: List[str] = Field(default_factory=list)


class PhaseState(BaseModel):
    """Read view of one phase, derived from progress + validation_state."""
    phase_id: str
    status: PhaseStatus
    validation_result: Optional[ValidationRecord] = None
    timestamp: Optional[str] = None


class WorkspaceDocument(BaseModel):
    """Aggregate root persisted as workspace/current-process.json."""
    model_config = ConfigDict(extra="allow")

    skill: str = "uiflow"
    version: str = "2.1"
    current_process: Optional[str] = None
    progress: Dict[str, PhaseStatus] = Field(default_factory=dict)
    validation_state: Dict[str, ValidationRecord] = Field(default_factory=dict)
    recovery_hints: RecoveryHints = Field(default_factory=RecoveryHints)
    context: Dict[str, Any] = Field(default_factory=dict)
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)

    @property
    def current_phase(self) -> Optional[str]:
        return self.current_process

    def phase(self, phase_id: str) -> PhaseState:
        record = self.validation_state.get(phase_id)
        return PhaseState(
            phase_id=phase_id,
            status=self.progress.get(phase_id, "pending"),
            validation_result=record,
            timestamp=record.timestamp if record else None,
        )

    def phases(self) -> List[PhaseState]:
        from .phases import PHASE_ORDER

        return [self.phase(p) for p in PHASE_ORDER]


# ---------------------------------------------------------------------------
# Error ledger (workspace/screenshot-error-log.json)
# ---------------------------------------------------------------------------


class ErrorLedgerEntry(BaseModel):
    screen_id: str
    profile: str
    error_message: str
    path: str
    timestamp: str = Field(default_factory=utc_now)
    retry_count: int = 0

    @property
    def key(self) -> tuple[str, str]:
        return (self.screen_id, self.profile)


class ErrorLedger(BaseModel):
    last_run: Optional[str] = None
    errors: List[ErrorLedgerEntry] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Capture outcomes
# ---------------------------------------------------------------------------


class CaptureSuccess(BaseModel):
    kind: Literal["success"] = "success"
    screen_id: str
    profile: str
    output_path: str
    attempts: int


class CaptureFailure(BaseModel):
    kind: Literal["failure"] = "failure"
    screen_id: str
    profile: str
    source_path: str
    attempts: int
    error: str


CaptureOutcome = Union[CaptureSuccess, CaptureFailure]


class CaptureRunReport(BaseModel):
    """Summary of one capture pass."""
    mode: Literal["all", "retry-failed", "validate-only"] = "all"
    attempted: int = 0
    captured: int = 0
    failed: int = 0
    blocked: bool = False
    blocked_reason: Optional[str] = None
    missing_sources: List[str] = Field(default_factory=list)
    outcomes: List[Union[CaptureSuccess, CaptureFailure]] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.blocked and self.failed == 0 and not self.missing_sources


# ---------------------------------------------------------------------------
# Consistency report
# ---------------------------------------------------------------------------


class ConsistencyFinding(BaseModel):
    category: str
    status: FindingStatus
    message: str


class ConsistencyReport(BaseModel):
    standard_version: str = ""
    standard_source: str = ""
    findings: List[ConsistencyFinding] = Field(default_factory=list)
    timestamp: str = Field(default_factory=utc_now)

    def by_category(self) -> Dict[str, List[ConsistencyFinding]]:
        grouped: Dict[str, List[ConsistencyFinding]] = {}
        for f in self.findings:
            grouped.setdefault(f.category, []).append(f)
        return grouped

    def count(self, status: FindingStatus) -> int:
        return sum(1 for f in self.findings if f.status == status)

    @property
    def passed(self) -> bool:
        return self.count("fail") == 0

    def failures(self, category: Optional[str] = None) -> List[ConsistencyFinding]:
        return [
            f for f in self.findings
            if f.status == "fail" and (category is None or f.category == category)
        ]

    def to_validation_result(self, name: str = "consistency") -> ValidationResult:
        checks = [
            CheckResult(
                name=f"{name}: {f.category}",
                passed=f.status == "pass",
                detail=f.message,
                severity="error" if f.status == "fail" else "warning",
            )
            for f in self.findings
        ]
        return ValidationResult.from_checks(checks)


# ---------------------------------------------------------------------------
# Overview counters
# ---------------------------------------------------------------------------


class ScreenInventory(BaseModel):
    """Ground truth counted from generated screen files on disk."""
    modules: Dict[str, int] = Field(default_factory=dict)
    ipad_total: int = 0
    iphone_total: int = 0

    @property
    def expected_coverage(self) -> int:
        return 100 if self.ipad_total > 0 else 0


class DisplayedCounters(BaseModel):
    """Counters the overview artifact displays. None = not found."""
    coverage: Optional[int] = None
    ipad_total: Optional[int] = None
    iphone_total: Optional[int] = None
    modules: Dict[str, int] = Field(default_factory=dict)
    source: Literal["summary-island", "markup", "none"] = "none"


# ---------------------------------------------------------------------------
# Transition output
# ---------------------------------------------------------------------------


class PhaseSummary(BaseModel):
    from_phase: str
    to_phase: Optional[str]
    text: str
    timestamp: str = Field(default_factory=utc_now)


class TransitionOutcome(BaseModel):
    from_phase: str
    to_phase: Optional[str]
    advanced: bool
    validation: Optional[ValidationResult] = None
    summary: Optional[PhaseSummary] = None
    guidance: str = ""
    current_phase: Optional[str] = None


# ---------------------------------------------------------------------------
# Post-generation gate (workspace/validation-report.json)
# ---------------------------------------------------------------------------


class GateStep(BaseModel):
    name: str
    success: bool
    error_count: int = 0
    warning_count: int = 0
    failures: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)


class PostGenerationReport(BaseModel):
    timestamp: str = Field(default_factory=utc_now)
    passed: bool
    action: Literal["PROCEED", "BLOCKED"]
    results: List[GateStep] = Field(default_factory=list)

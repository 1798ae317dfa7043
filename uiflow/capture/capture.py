"""Snapshot capture with pre-validation, coverage gate and bounded retry.

Flow of a full pass (``capture_all``):

1. Pre-validation: enumerate expected screens x profiles, report every
   missing source up front and record it in the error ledger
   (``retry_count = 0``, never attempted).
2. Coverage gate: clickable-element coverage must reach the threshold.
   Below it the run is blocked unless ``allow_incomplete`` is set.
3. Capture: profiles sequentially, screens in enumeration order. Each
   target gets at most ``max_attempts`` attempts with linear backoff and
   yields a ``CaptureSuccess`` or ``CaptureFailure``.
4. Ledger: failures upserted, successes cleared, file written atomically.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .. import settings
from ..errors import CaptureAttemptError
from ..layout import ProjectLayout
from ..models import (
    CaptureFailure,
    CaptureOutcome,
    CaptureRunReport,
    CaptureSuccess,
    ErrorLedger,
    utc_now,
)
from ..validators.navigation import NavigationReport, NavigationValidator
from .driver import CaptureDriver, PlaywrightDriver
from .ledger import ErrorLedgerStore, clear_entry, record_failure

logger = logging.getLogger("uiflow.capture")

MISSING_SOURCE = "Source file not found"


@dataclass(frozen=True)
class CaptureTarget:
    screen_id: str
    profile: str
    source: Path
    output: Path


class ArtifactCapture:
    """Render every screen under each device profile and save a PNG."""

    def __init__(
        self,
        project_dir: Path,
        driver_factory: Optional[Callable[[], CaptureDriver]] = None,
        max_attempts: Optional[int] = None,
        backoff: Optional[float] = None,
        coverage_threshold: Optional[float] = None,
        block_on_coverage: Optional[bool] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.layout = ProjectLayout(project_dir)
        self.ledger_store = ErrorLedgerStore(self.layout.root)
        self.driver_factory = driver_factory or PlaywrightDriver
        self.max_attempts = max_attempts if max_attempts is not None else settings.CAPTURE_MAX_ATTEMPTS
        self.backoff = backoff if backoff is not None else settings.CAPTURE_RETRY_BACKOFF
        self.coverage_threshold = (
            coverage_threshold if coverage_threshold is not None else settings.CAPTURE_COVERAGE_THRESHOLD
        )
        self.block_on_coverage = (
            block_on_coverage if block_on_coverage is not None else settings.CAPTURE_BLOCK_ON_COVERAGE
        )
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def targets(self, screens: Optional[List[str]] = None) -> List[CaptureTarget]:
        """Expected screen x profile pairs, profiles in order, screens sorted.

        A screen found under one profile is expected under every profile;
        its source path there is where the renderer should have put it.
        """
        found: Dict[Tuple[str, str], Path] = {}
        for profile in self.layout.profiles:
            for s in self.layout.screens(profile):
                found[(s.screen_id, profile)] = s.path

        ids = screens if screens is not None else self.layout.screen_ids()
        out = []
        for profile in self.layout.profiles:
            for sid in sorted(ids):
                source = found.get((sid, profile)) or self.layout.expected_source(sid, profile)
                out.append(CaptureTarget(sid, profile, source, self.layout.screenshot_path(sid, profile)))
        return out

    def prevalidate(self, screens: Optional[List[str]] = None) -> List[CaptureTarget]:
        """Return every expected target whose source file is missing."""
        missing = [t for t in self.targets(screens) if not t.source.is_file()]
        for t in missing:
            logger.warning(f"Missing source [{t.profile}] {t.screen_id}: {self.layout.rel(t.source)}")
        return missing

    def check_coverage(self) -> Tuple[bool, NavigationReport]:
        validator = NavigationValidator(self.layout.root, threshold=self.coverage_threshold)
        report = validator.run()
        return report.coverage >= self.coverage_threshold, report

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    async def capture_one(self, driver: CaptureDriver, target: CaptureTarget) -> CaptureOutcome:
        """Bounded retry loop; exhaustion is a normal CaptureFailure return."""
        prof = self.layout.profiles[target.profile]
        target.output.parent.mkdir(parents=True, exist_ok=True)
        url = target.source.resolve().as_uri()
        error = ""
        attempt = 0
        while attempt < self.max_attempts:
            attempt += 1
            try:
                await driver.capture(url, target.output, prof)
                logger.info(f"[{target.profile}] {target.screen_id} captured (attempt {attempt})")
                return CaptureSuccess(
                    screen_id=target.screen_id,
                    profile=target.profile,
                    output_path=self.layout.rel(target.output),
                    attempts=attempt,
                )
            except CaptureAttemptError as e:
                error = str(e)
                logger.warning(
                    f"[{target.profile}] {target.screen_id} attempt {attempt}/{self.max_attempts} failed: {error}"
                )
            if attempt < self.max_attempts and self.backoff > 0:
                await self._sleep(self.backoff * attempt)

        return CaptureFailure(
            screen_id=target.screen_id,
            profile=target.profile,
            source_path=self.layout.rel(target.source),
            attempts=attempt,
            error=error,
        )

    def _apply(self, ledger: ErrorLedger, report: CaptureRunReport, outcome: CaptureOutcome) -> None:
        report.outcomes.append(outcome)
        if isinstance(outcome, CaptureSuccess):
            report.captured += 1
            clear_entry(ledger, outcome.screen_id, outcome.profile)
        else:
            report.failed += 1
            record_failure(
                ledger,
                outcome.screen_id,
                outcome.profile,
                outcome.error,
                outcome.source_path,
                attempts=outcome.attempts,
            )

    def _record_missing(self, ledger: ErrorLedger, report: CaptureRunReport, target: CaptureTarget) -> None:
        rel = self.layout.rel(target.source)
        report.missing_sources.append(f"{target.profile}: {rel}")
        record_failure(ledger, target.screen_id, target.profile, MISSING_SOURCE, rel, attempts=0)

    async def _run(self, targets: List[CaptureTarget], ledger: ErrorLedger, report: CaptureRunReport) -> None:
        if not targets:
            return
        async with self.driver_factory() as driver:
            for target in targets:
                report.attempted += 1
                outcome = await self.capture_one(driver, target)
                self._apply(ledger, report, outcome)

    async def capture_all(
        self,
        screens: Optional[List[str]] = None,
        allow_incomplete: bool = False,
        skip_validation: bool = False,
    ) -> CaptureRunReport:
        report = CaptureRunReport(mode="all")

        if not skip_validation:
            passed, nav = self.check_coverage()
            if not passed:
                if self.block_on_coverage and not allow_incomplete:
                    report.blocked = True
                    report.blocked_reason = (
                        f"Navigation coverage {nav.coverage}% is below {self.coverage_threshold:g}% "
                        f"({len(nav.issues)} unresolved elements); fix navigation or run navigation-check"
                    )
                    logger.error(report.blocked_reason)
                    return report
                logger.warning(
                    f"!!! CAPTURING WITH INCOMPLETE NAVIGATION: coverage {nav.coverage}% "
                    f"< {self.coverage_threshold:g}% (override in effect)"
                )

        ledger = self.ledger_store.load()
        missing = {(t.screen_id, t.profile) for t in self.prevalidate(screens)}
        runnable = []
        for target in self.targets(screens):
            if (target.screen_id, target.profile) in missing:
                self._record_missing(ledger, report, target)
            else:
                runnable.append(target)

        try:
            await self._run(runnable, ledger, report)
        finally:
            ledger.last_run = utc_now()
            self.ledger_store.save(ledger)

        logger.info(
            f"Capture finished: {report.captured} captured, {report.failed} failed, "
            f"{len(report.missing_sources)} missing sources"
        )
        return report

    async def capture_failed_only(self) -> CaptureRunReport:
        """Re-attempt only the ledger's entries. Empty ledger: no-op."""
        report = CaptureRunReport(mode="retry-failed")
        ledger = self.ledger_store.load()
        if not ledger.errors:
            logger.info("Error ledger is empty; nothing to retry")
            return report

        runnable = []
        for entry in list(ledger.errors):
            if entry.profile not in self.layout.profiles:
                logger.warning(f"Ledger entry for unknown profile '{entry.profile}' kept: {entry.screen_id}")
                continue
            target = next(
                t for t in self.targets([entry.screen_id]) if t.profile == entry.profile
            )
            if not target.source.is_file():
                self._record_missing(ledger, report, target)
                continue
            runnable.append(target)

        try:
            await self._run(runnable, ledger, report)
        finally:
            ledger.last_run = utc_now()
            self.ledger_store.save(ledger)
        return report

    def validate_only(self, screens: Optional[List[str]] = None) -> CaptureRunReport:
        """Pre-validation and coverage check without launching a browser."""
        report = CaptureRunReport(mode="validate-only")
        for t in self.prevalidate(screens):
            report.missing_sources.append(f"{t.profile}: {self.layout.rel(t.source)}")
        passed, nav = self.check_coverage()
        if not passed and self.block_on_coverage:
            report.blocked = True
            report.blocked_reason = (
                f"Navigation coverage {nav.coverage}% is below {self.coverage_threshold:g}%"
            )
        return report

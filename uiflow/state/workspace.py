"""Workspace document persistence (workspace/current-process.json).

WorkspaceState is the single owner of the on-disk document. It is created
once per run, passed by reference to every component that needs it, and
persisted after each mutation.

``record_validation`` is the only path that marks a phase ``completed``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from ..config import PROCESS_FILE, WORKSPACE_DIR
from ..errors import WorkspaceStateError
from ..models import RecoveryHints, ValidationRecord, ValidationResult, WorkspaceDocument, utc_now
from ..phases import PHASE_ORDER, next_phase, normalize_phase, phase_index
from ..storage import atomic_write_json

logger = logging.getLogger("uiflow.state.workspace")

# context key: failed re-checks of already completed phases, by phase id
RECHECKS_KEY = "failed_rechecks"


def default_document() -> WorkspaceDocument:
    """Fresh document: every phase pending, first phase current."""
    doc = WorkspaceDocument(
        current_process=PHASE_ORDER[0],
        progress={p: "pending" for p in PHASE_ORDER},
    )
    doc.progress[PHASE_ORDER[0]] = "in_progress"
    return doc


def _migrate_legacy(raw: dict) -> dict:
    """Rewrite legacy numeric phase keys (03-generation ...) to canonical ids."""
    def _canon(key: Any) -> Any:
        try:
            return normalize_phase(key) if isinstance(key, str) else key
        except ValueError:
            return key

    if isinstance(raw.get("current_process"), str):
        raw["current_process"] = _canon(raw["current_process"])
    for section in ("progress", "validation_state"):
        if isinstance(raw.get(section), dict):
            raw[section] = {_canon(k): v for k, v in raw[section].items()}
    hints = raw.get("recovery_hints")
    if isinstance(hints, dict) and "last_completed_node" in hints:
        hints.setdefault("last_completed_phase", _canon(hints.pop("last_completed_node")))
        if "current_node" in hints:
            hints.setdefault("current_phase", _canon(hints.pop("current_node")))
    return raw


class WorkspaceState:
    """Read/write handle for one project's workspace document."""

    def __init__(self, project_dir: Path | str):
        self.project_dir = Path(project_dir)
        self.path = self.project_dir / PROCESS_FILE
        self._doc: Optional[WorkspaceDocument] = None

    @property
    def document(self) -> WorkspaceDocument:
        if self._doc is None:
            self._doc = self.load()
        return self._doc

    def exists(self) -> bool:
        return self.path.is_file()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> WorkspaceDocument:
        """Return the persisted document, or a fresh default if none exists.

        A document that cannot be parsed is moved aside to
        ``current-process.json.corrupt`` and replaced by a default.
        """
        if not self.path.is_file():
            self._doc = default_document()
            return self._doc

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            doc = WorkspaceDocument.model_validate(_migrate_legacy(raw))
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            backup = self.path.with_name(self.path.name + ".corrupt")
            logger.warning(
                f"Workspace document unreadable ({e.__class__.__name__}); "
                f"moved to {backup.name} and recreated"
            )
            self.path.replace(backup)
            doc = default_document()
        except OSError as e:
            raise WorkspaceStateError(f"Cannot read {self.path}: {e}") from e

        for p in PHASE_ORDER:
            doc.progress.setdefault(p, "pending")
        self._doc = doc
        return doc

    def save(self, doc: Optional[WorkspaceDocument] = None) -> None:
        """Atomically persist ``doc`` (or the loaded document)."""
        if doc is not None:
            self._doc = doc
        doc = self.document
        doc.updated_at = utc_now()
        try:
            atomic_write_json(self.path, doc.model_dump(mode="json"))
        except OSError as e:
            raise WorkspaceStateError(f"Cannot write {self.path}: {e}") from e
        logger.debug(f"Workspace saved: current={doc.current_process}")

    def ensure_workspace(self) -> list[str]:
        """Create workspace/, workspace/context/, workspace/state/. Returns created paths."""
        created = []
        for sub in ("", "context", "state"):
            d = self.project_dir / WORKSPACE_DIR / sub
            if not d.is_dir():
                d.mkdir(parents=True, exist_ok=True)
                created.append(str(d.relative_to(self.project_dir)))
        return created

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def record_validation(
        self,
        phase_id: str,
        result: ValidationResult,
        advance: bool = True,
    ) -> WorkspaceDocument:
        """Store ``result`` for ``phase_id``; on pass (and ``advance``) move forward.

        Passing marks the phase completed, the next phase in_progress and
        advances current_process. Failing leaves the phase in_progress.
        current_process never moves backwards.

        A failed re-check of a completed phase does not replace its passing
        validation_state entry; it is kept under ``context["failed_rechecks"]``
        until the phase passes again.
        """
        phase_id = normalize_phase(phase_id)
        doc = self.document
        record = ValidationRecord.from_result(result)
        ts = result.timestamp
        rechecks = doc.context.get(RECHECKS_KEY) or {}

        if result.passed or doc.progress.get(phase_id) != "completed":
            # validation_state of a completed phase always holds a passing result
            doc.validation_state[phase_id] = record
            rechecks.pop(phase_id, None)
        else:
            rechecks[phase_id] = record.model_dump(mode="json")
        if rechecks:
            doc.context[RECHECKS_KEY] = rechecks
        else:
            doc.context.pop(RECHECKS_KEY, None)

        if result.passed and advance:
            doc.progress[phase_id] = "completed"
            nxt = next_phase(phase_id)
            if nxt is not None and doc.progress.get(nxt) != "completed":
                doc.progress[nxt] = "in_progress"
            if not self._is_ahead(doc.current_process, nxt):
                doc.current_process = nxt
            doc.recovery_hints.last_action = f"Exit gate {phase_id} PASSED at {ts}"
            doc.recovery_hints.last_completed_phase = phase_id
            doc.recovery_hints.current_phase = doc.current_process
            doc.recovery_hints.pending_fixes = []
        elif result.passed:
            doc.recovery_hints.last_action = f"Exit gate {phase_id} checked (passed) at {ts}"
        else:
            if doc.progress.get(phase_id) != "completed":
                doc.progress[phase_id] = "in_progress"
            doc.recovery_hints.last_action = f"Exit gate {phase_id} FAILED at {ts}"
            doc.recovery_hints.pending_fixes = [
                f"{c.name}: {c.detail}" for c in result.failed_checks
            ]

        doc.updated_at = utc_now()
        return doc

    @staticmethod
    def _is_ahead(current: Optional[str], candidate: Optional[str]) -> bool:
        """True when ``current`` is already past ``candidate`` in the order."""
        if current is None:
            # Pipeline already finished
            return True
        if candidate is None:
            return False
        return phase_index(current) > phase_index(candidate)

    def update_context(self, **values: Any) -> None:
        doc = self.document
        doc.context.update({k: v for k, v in values.items() if v is not None})
        doc.updated_at = utc_now()

    def set_recovery_hints(self, **values: Any) -> None:
        doc = self.document
        merged = doc.recovery_hints.model_dump()
        merged.update(values)
        doc.recovery_hints = RecoveryHints.model_validate(merged)
        doc.updated_at = utc_now()

    def failed_rechecks(self) -> list[str]:
        """Completed phases whose latest exit gate re-check failed, in phase order."""
        rechecks = self.document.context.get(RECHECKS_KEY) or {}
        return [p for p in PHASE_ORDER if p in rechecks]

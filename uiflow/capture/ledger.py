"""Error ledger persistence (workspace/screenshot-error-log.json).

Entries are keyed by (screen_id, profile). A failure upserts the entry and
accumulates ``retry_count``; a later success removes it. Entries are never
dropped otherwise.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..config import ERROR_LEDGER_FILE
from ..errors import WorkspaceStateError
from ..models import ErrorLedger, ErrorLedgerEntry, utc_now
from ..storage import atomic_write_json

logger = logging.getLogger("uiflow.capture.ledger")


class ErrorLedgerStore:
    def __init__(self, project_dir: Path):
        self.path = Path(project_dir) / ERROR_LEDGER_FILE

    def load(self) -> ErrorLedger:
        if not self.path.is_file():
            return ErrorLedger()
        try:
            return ErrorLedger.model_validate(json.loads(self.path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValidationError) as e:
            backup = self.path.with_name(self.path.name + ".corrupt")
            logger.warning(f"Error ledger unreadable ({e.__class__.__name__}); moved to {backup.name}")
            self.path.replace(backup)
            return ErrorLedger()
        except OSError as e:
            raise WorkspaceStateError(f"Cannot read {self.path}: {e}") from e

    def save(self, ledger: ErrorLedger) -> None:
        try:
            atomic_write_json(self.path, ledger.model_dump(mode="json"))
        except OSError as e:
            raise WorkspaceStateError(f"Cannot write {self.path}: {e}") from e


def find_entry(ledger: ErrorLedger, screen_id: str, profile: str) -> Optional[ErrorLedgerEntry]:
    for entry in ledger.errors:
        if entry.key == (screen_id, profile):
            return entry
    return None


def record_failure(
    ledger: ErrorLedger,
    screen_id: str,
    profile: str,
    message: str,
    path: str,
    attempts: int,
) -> ErrorLedgerEntry:
    """Upsert a failure; ``attempts`` is added to the entry's retry_count."""
    entry = find_entry(ledger, screen_id, profile)
    if entry is None:
        entry = ErrorLedgerEntry(
            screen_id=screen_id,
            profile=profile,
            error_message=message,
            path=path,
            retry_count=attempts,
        )
        ledger.errors.append(entry)
    else:
        entry.error_message = message
        entry.path = path
        entry.timestamp = utc_now()
        entry.retry_count += attempts
    return entry


def clear_entry(ledger: ErrorLedger, screen_id: str, profile: str) -> bool:
    before = len(ledger.errors)
    ledger.errors = [e for e in ledger.errors if e.key != (screen_id, profile)]
    return len(ledger.errors) != before

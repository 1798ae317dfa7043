"""Pipeline configuration constants: single source of truth for env-derived paths."""

import os
from pathlib import Path

# Project directory: the prototype root (index.html, device-preview.html, ...)
PROJECT_DIR = os.getenv("UIFLOW_PROJECT_DIR", "")

# Reference standard override: explicit standards.json path
STANDARDS_PATH = os.getenv("UIFLOW_STANDARDS_PATH", "")

# Per-user config home: shared default standards live here
UIFLOW_HOME = Path(os.getenv("UIFLOW_HOME", str(Path.home() / ".config" / "uiflow")))

# Packaged reference standard shipped with the library
PACKAGED_STANDARDS = Path(__file__).parent / "reference" / "standards.json"

# Workspace layout (relative to project dir)
WORKSPACE_DIR = "workspace"
PROCESS_FILE = "workspace/current-process.json"
ERROR_LEDGER_FILE = "workspace/screenshot-error-log.json"
PHASE_SUMMARY_FILE = "workspace/phase-summary.md"
PHASE_HISTORY_FILE = "workspace/phase-history.md"
VALIDATION_REPORT_FILE = "workspace/validation-report.json"
REPORTS_DIR = "workspace/reports"
COMPLETION_REPORT_FILE = "ui-flow-completion-report.md"


def resolve_project_dir(path: str | os.PathLike | None = None) -> Path:
    """Explicit path wins, then UIFLOW_PROJECT_DIR, then the current directory."""
    if path:
        return Path(path).resolve()
    if PROJECT_DIR:
        return Path(PROJECT_DIR).resolve()
    return Path.cwd()

"""Pipeline API endpoints.

Exit gates, transitions and standalone checks for one prototype project.
Every request names the project by ``project_path``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from uiflow.capture import ErrorLedgerStore
from uiflow.errors import StandardsNotFoundError, TransitionError, UnknownPhaseError
from uiflow.gates import NodeTransitionCoordinator, PostGenerationGate
from uiflow.models import ErrorLedger, TransitionOutcome, ValidationResult, WorkspaceDocument
from uiflow.state import WorkspaceState
from uiflow.validators import (
    ConsistencyValidator,
    IframeSrcValidator,
    IndexDataValidator,
    NavigationValidator,
    TemplateVariableValidator,
)

logger = logging.getLogger("uiflow.routes.pipeline")

router = APIRouter(prefix="/api/v1/pipeline", tags=["pipeline"])


# --- Schemas ---


class ProjectRequest(BaseModel):
    project_path: str = Field(..., min_length=1)


class TransitionRequest(ProjectRequest):
    from_phase: str = Field(..., min_length=1)
    to_phase: str = Field(..., min_length=1)


# --- Helpers ---


def _project_dir(project_path: str) -> Path:
    root = Path(project_path).expanduser().resolve()
    if not root.is_dir():
        raise HTTPException(status_code=400, detail=f"Project directory not found: {project_path}")
    return root


CHECKS: Dict[str, Callable[[Path], Any]] = {
    "consistency": lambda root: ConsistencyValidator(root).validate(),
    "index-data": lambda root: IndexDataValidator(root).validate(),
    "template-variables": lambda root: TemplateVariableValidator(root).validate(),
    "navigation": lambda root: NavigationValidator(root).validate(),
    "iframe-src": lambda root: IframeSrcValidator(root).validate(),
    "post-generation": lambda root: PostGenerationGate(root).run(),
}


# --- Endpoints ---


@router.get("/workspace", response_model=WorkspaceDocument)
def get_workspace(project_path: str = Query(..., min_length=1)):
    """Return the workspace document (a fresh default when none exists yet)."""
    return WorkspaceState(_project_dir(project_path)).document


@router.post("/gates/{phase_id}", response_model=ValidationResult)
def run_exit_gate(phase_id: str, payload: ProjectRequest):
    root = _project_dir(payload.project_path)
    try:
        return NodeTransitionCoordinator(root).exit_gate(phase_id)
    except UnknownPhaseError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StandardsNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/transitions", response_model=TransitionOutcome)
def run_transition(payload: TransitionRequest):
    root = _project_dir(payload.project_path)
    try:
        outcome = NodeTransitionCoordinator(root).transition(payload.from_phase, payload.to_phase)
    except UnknownPhaseError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StandardsNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    logger.info(
        f"Transition {outcome.from_phase} -> {outcome.to_phase}: "
        f"{'advanced' if outcome.advanced else 'blocked'}"
    )
    return outcome


@router.post("/checks/{check}")
def run_check(check: str, payload: ProjectRequest) -> Dict[str, Any]:
    runner: Optional[Callable[[Path], Any]] = CHECKS.get(check)
    if runner is None:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown check '{check}'. Available: {', '.join(CHECKS)}",
        )
    root = _project_dir(payload.project_path)
    try:
        result = runner(root)
    except StandardsNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"check": check, "passed": result.passed, "result": result.model_dump(mode="json")}


@router.get("/capture/ledger", response_model=ErrorLedger)
def get_capture_ledger(project_path: str = Query(..., min_length=1)):
    return ErrorLedgerStore(_project_dir(project_path)).load()

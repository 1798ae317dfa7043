"""Phase definitions for the UI flow pipeline.

Phases form a strict total order. Each phase carries a display name, the
entry file an operator reads when starting it, a next-action hint and a
summary template rendered by the transition coordinator.

Legacy numeric ids (``03-generation`` ...) are accepted as aliases.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .errors import UnknownPhaseError

INIT = "init"
GENERATE = "generate"
VALIDATE_NAVIGATION = "validate-navigation"
BUILD_DIAGRAMS = "build-diagrams"
CAPTURE_SCREENSHOTS = "capture-screenshots"
FEEDBACK_WRITEBACK = "feedback-writeback"
FINALIZE = "finalize"

PHASE_ORDER: List[str] = [
    INIT,
    GENERATE,
    VALIDATE_NAVIGATION,
    BUILD_DIAGRAMS,
    CAPTURE_SCREENSHOTS,
    FEEDBACK_WRITEBACK,
    FINALIZE,
]

PHASE_ALIASES: Dict[str, str] = {
    "00-init": INIT,
    "03-generation": GENERATE,
    "04-validation": VALIDATE_NAVIGATION,
    "05-diagram": BUILD_DIAGRAMS,
    "06-screenshot": CAPTURE_SCREENSHOTS,
    "07-feedback": FEEDBACK_WRITEBACK,
    "08-finalize": FINALIZE,
}


@dataclass(frozen=True)
class PhaseDefinition:
    """Metadata for one pipeline phase.

    Attributes:
        phase_id: Canonical id (e.g. "generate")
        name: Human-readable name
        entry_file: Document an operator reads when entering the phase
        action: What the phase produces
        summary: Renders the completed-phase digest from a context dict
    """

    phase_id: str
    name: str
    entry_file: str
    action: str
    summary: Callable[[Dict[str, Any]], List[str]]


def _modules(ctx: Dict[str, Any]) -> str:
    return ", ".join(ctx.get("modules") or []) or "(none)"


PHASE_DEFINITIONS: Dict[str, PhaseDefinition] = {
    INIT: PhaseDefinition(
        INIT, "Initialization", "process/init/README.md",
        "Copy templates and initialize workspace",
        lambda ctx: [
            f"- Project: {ctx.get('project_name') or ctx.get('project_path', '')}",
            "- Templates: copied and configured",
            "- Workspace: initialized",
        ],
    ),
    GENERATE: PhaseDefinition(
        GENERATE, "Screen Generation", "process/generate/README.md",
        "Generate all screen HTML files (ipad + iphone)",
        lambda ctx: [
            f"- iPad screens: {ctx.get('ipad_count', 0)}",
            f"- iPhone screens: {ctx.get('iphone_count', 0)}",
            f"- Modules: {_modules(ctx)}",
            "- index.html: variables replaced, counters verified",
            "- device-preview.html: sidebar populated",
        ],
    ),
    VALIDATE_NAVIGATION: PhaseDefinition(
        VALIDATE_NAVIGATION, "Navigation Validation", "process/validate-navigation/README.md",
        "Validate 100% navigation coverage (no empty or alert handlers)",
        lambda ctx: [
            f"- Coverage: {ctx.get('navigation_coverage', 100)}%",
            f"- Screens checked: {ctx.get('ipad_count', 0) + ctx.get('iphone_count', 0)}",
            "- Consistency: PASSED",
        ],
    ),
    BUILD_DIAGRAMS: PhaseDefinition(
        BUILD_DIAGRAMS, "Diagram Generation", "process/build-diagrams/README.md",
        "Generate docs/ui-flow-diagram-ipad.html and docs/ui-flow-diagram-iphone.html",
        lambda ctx: [
            "- iPad diagram: docs/ui-flow-diagram-ipad.html",
            "- iPhone diagram: docs/ui-flow-diagram-iphone.html",
            f"- Screen cards: {ctx.get('ipad_count', 0)}",
        ],
    ),
    CAPTURE_SCREENSHOTS: PhaseDefinition(
        CAPTURE_SCREENSHOTS, "Screenshot Capture", "process/capture-screenshots/README.md",
        "Capture PNG snapshots into screenshots/ipad/ and screenshots/iphone/",
        lambda ctx: [
            f"- iPad screenshots: {ctx.get('ipad_screenshots', 0)}",
            f"- iPhone screenshots: {ctx.get('iphone_screenshots', 0)}",
            "- Location: screenshots/ipad/, screenshots/iphone/",
        ],
    ),
    FEEDBACK_WRITEBACK: PhaseDefinition(
        FEEDBACK_WRITEBACK, "Document Feedback", "process/feedback-writeback/README.md",
        "Embed prototype references into SDD and SRS",
        lambda ctx: [
            "- SDD: UI prototype references added",
            "- SRS: Screen References section added",
        ],
    ),
    FINALIZE: PhaseDefinition(
        FINALIZE, "Finalization", "process/finalize/README.md",
        "Final verification and completion report",
        lambda ctx: [
            f"- Total screens: {ctx.get('ipad_count', 0)}",
            "- Navigation: 100% coverage",
            "- Diagrams, screenshots, documents: complete",
        ],
    ),
}


def normalize_phase(phase_id: str) -> str:
    """Map a canonical id or legacy alias to the canonical id."""
    canonical = PHASE_ALIASES.get(phase_id, phase_id)
    if canonical not in PHASE_DEFINITIONS:
        raise UnknownPhaseError(
            f"Unknown phase '{phase_id}'. Valid phases: {', '.join(PHASE_ORDER)}"
        )
    return canonical


def phase_index(phase_id: str) -> int:
    return PHASE_ORDER.index(normalize_phase(phase_id))


def next_phase(phase_id: str) -> Optional[str]:
    idx = phase_index(phase_id)
    return PHASE_ORDER[idx + 1] if idx + 1 < len(PHASE_ORDER) else None

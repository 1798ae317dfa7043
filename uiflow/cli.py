"""uiflow command line.

Usage:
    uiflow exit-gate <phase> [path]
    uiflow transition <from> <to> [path]
    uiflow capture [--validate-only | --skip-validation | --retry-failed] [--allow-incomplete] [path]
    uiflow consistency-check [path]
    uiflow status [path]

Exit codes: 0 = passed, 1 = blocked or failed, 2 = usage error.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Callable, List, Optional

from . import __version__
from .capture import ArtifactCapture
from .config import resolve_project_dir
from .errors import TransitionError, UiflowError, UnknownPhaseError
from .gates import NodeTransitionCoordinator, PostGenerationGate
from .logging_config import get_cli_logger
from .phases import PHASE_ORDER
from .reporting import (
    format_capture,
    format_consistency,
    format_post_generation,
    format_result,
    format_status,
    format_transition,
    write_report,
)
from .standards import load_standard
from .state import WorkspaceState
from .validators import (
    ConsistencyValidator,
    IndexDataValidator,
    NavigationValidator,
    TemplateVariableValidator,
)

logger = logging.getLogger("uiflow.cli")

EXIT_OK = 0
EXIT_BLOCKED = 1
EXIT_USAGE = 2


def _project(args: argparse.Namespace) -> Path:
    root = resolve_project_dir(args.path)
    if not root.is_dir():
        raise UiflowError(f"Project directory not found: {root}")
    return root


def _out(text: str) -> None:
    print(text)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_exit_gate(args: argparse.Namespace) -> int:
    root = _project(args)
    result = NodeTransitionCoordinator(root).exit_gate(args.phase)
    write_report(root, f"exit-gate-{result.phase_id}", result)
    _out(format_result(f"Exit gate: {result.phase_id}", result, verbose=args.verbose))
    return EXIT_OK if result.passed else EXIT_BLOCKED


def cmd_transition(args: argparse.Namespace) -> int:
    root = _project(args)
    outcome = NodeTransitionCoordinator(root).transition(args.from_phase, args.to_phase)
    write_report(root, "transition", outcome)
    _out(format_transition(outcome))
    return EXIT_OK if outcome.advanced else EXIT_BLOCKED


def cmd_capture(args: argparse.Namespace) -> int:
    root = _project(args)
    capture = ArtifactCapture(root)
    screens: Optional[List[str]] = args.screens or None

    if args.validate_only:
        report = capture.validate_only(screens)
    elif args.retry_failed:
        report = asyncio.run(capture.capture_failed_only())
        if report.attempted == 0 and not report.missing_sources:
            # empty ledger
            _out(format_capture(report))
            return EXIT_OK
    else:
        report = asyncio.run(capture.capture_all(
            screens=screens,
            allow_incomplete=args.allow_incomplete,
            skip_validation=args.skip_validation,
        ))
    write_report(root, "capture", report)
    _out(format_capture(report))
    return EXIT_OK if report.passed else EXIT_BLOCKED


def cmd_consistency_check(args: argparse.Namespace) -> int:
    root = _project(args)
    candidates = [Path(args.standards)] if args.standards else None
    standard, source = load_standard(root, candidates)
    report = ConsistencyValidator(root, standard=standard, standard_source=str(source)).validate()
    write_report(root, "consistency", report)
    _out(format_consistency(report))
    return EXIT_OK if report.passed else EXIT_BLOCKED


def _simple_check(name: str, title: str, run: Callable[[Path], object]) -> Callable[[argparse.Namespace], int]:
    def command(args: argparse.Namespace) -> int:
        root = _project(args)
        result = run(root)
        write_report(root, name, result)
        _out(format_result(title, result, verbose=args.verbose))
        return EXIT_OK if result.passed else EXIT_BLOCKED
    return command


cmd_index_data_check = _simple_check(
    "index-data", "index.html data", lambda root: IndexDataValidator(root).validate()
)
cmd_template_variable_check = _simple_check(
    "template-variables", "Template variables", lambda root: TemplateVariableValidator(root).validate()
)
cmd_navigation_check = _simple_check(
    "navigation", "Navigation", lambda root: NavigationValidator(root).validate()
)


def cmd_post_generation_gate(args: argparse.Namespace) -> int:
    report = PostGenerationGate(_project(args)).run()
    _out(format_post_generation(report))
    return EXIT_OK if report.passed else EXIT_BLOCKED


def cmd_status(args: argparse.Namespace) -> int:
    status = NodeTransitionCoordinator(_project(args)).status()
    if not status["workspace_exists"]:
        _out("No workspace document; run: uiflow init")
    _out(format_status(status))
    return EXIT_OK


def cmd_init(args: argparse.Namespace) -> int:
    state = WorkspaceState(_project(args))
    created = state.ensure_workspace()
    if not state.exists():
        state.save()
        created.append(str(state.path))
    for path in created:
        _out(f"created {path}")
    _out(f"Current phase: {state.document.current_process}")
    return EXIT_OK


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="uiflow", description="Phase gates for UI prototype pipelines")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging and passed checks")
    sub = parser.add_subparsers(dest="command", required=True)

    def add(name: str, handler: Callable[[argparse.Namespace], int], help: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help)
        p.set_defaults(handler=handler)
        return p

    p = add("exit-gate", cmd_exit_gate, "Validate a phase's exit conditions")
    p.add_argument("phase", help=f"One of: {', '.join(PHASE_ORDER)}")
    p.add_argument("path", nargs="?")

    p = add("transition", cmd_transition, "Gate, summarize and advance to the next phase")
    p.add_argument("from_phase", metavar="from")
    p.add_argument("to_phase", metavar="to", help="Next phase id, or 'done' after finalize")
    p.add_argument("path", nargs="?")

    p = add("capture", cmd_capture, "Capture screenshots for every screen and device profile")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--validate-only", action="store_true", help="Pre-validation only, no browser")
    mode.add_argument("--skip-validation", action="store_true", help="Skip the navigation coverage gate")
    mode.add_argument("--retry-failed", action="store_true", help="Retry only the error ledger entries")
    p.add_argument(
        "--allow-incomplete",
        action="store_true",
        help="Capture even if navigation coverage is below threshold (not recommended)",
    )
    p.add_argument("--screen", dest="screens", action="append", help="Restrict to this screen id (repeatable)")
    p.add_argument("path", nargs="?")

    p = add("consistency-check", cmd_consistency_check, "Compare aggregates with the reference standard")
    p.add_argument("--standards", help="Explicit standards.json path")
    p.add_argument("path", nargs="?")

    for name, handler, help in (
        ("index-data-check", cmd_index_data_check, "Check index.html counters against disk"),
        ("template-variable-check", cmd_template_variable_check, "Find unresolved {{VARIABLE}} tokens"),
        ("navigation-check", cmd_navigation_check, "Measure clickable-element coverage"),
        ("post-generation-gate", cmd_post_generation_gate, "Run the post-generation validation chain"),
        ("status", cmd_status, "Reconcile the workspace and print the current state"),
        ("init", cmd_init, "Create the workspace and a fresh workspace document"),
    ):
        add(name, handler, help).add_argument("path", nargs="?")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    get_cli_logger(args.verbose)

    try:
        return args.handler(args)
    except (UnknownPhaseError, TransitionError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except UiflowError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_BLOCKED


if __name__ == "__main__":
    raise SystemExit(main())

"""Unresolved template variable detection.

Scans the final rendered output (aggregate pages plus every screen of both
profiles) for ``{{UPPER_CASE}}`` tokens left behind by a skipped or
partial substitution step. Any match is an error.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..layout import ProjectLayout
from ..models import CheckResult, ValidationResult

logger = logging.getLogger("uiflow.validators.template_variables")

TEMPLATE_VARIABLE_RE = re.compile(r"\{\{([A-Z_][A-Z0-9_]*)\}\}")

# Variables the project templates ship with, and what they should become
KNOWN_VARIABLES: Dict[str, str] = {
    "FIRST_SCREEN_PATH": "initial screen path, e.g. 'auth/SCR-AUTH-001-login.html'",
    "PROJECT_NAME": "project name",
    "TOTAL_SCREENS": "total screen count",
    "MODULE_COUNT": "number of modules",
    "PRIMARY_COLOR": "primary color token",
    "ACCENT_COLOR": "accent color token",
}


@dataclass(frozen=True)
class VariableMatch:
    file: str
    name: str
    line: int

    @property
    def token(self) -> str:
        return "{{" + self.name + "}}"


def find_unresolved(content: str, file: str) -> List[VariableMatch]:
    """Return every unresolved token in ``content`` with its 1-based line."""
    matches = []
    for m in TEMPLATE_VARIABLE_RE.finditer(content):
        line = content.count("\n", 0, m.start()) + 1
        matches.append(VariableMatch(file=file, name=m.group(1), line=line))
    return matches


def remediation_hint(name: str) -> str:
    return KNOWN_VARIABLES.get(name, "custom variable")


class TemplateVariableValidator:
    """Pass iff zero unresolved tokens across all scanned files."""

    def __init__(self, project_dir: Path, files: Optional[Iterable[Path]] = None):
        self.layout = ProjectLayout(project_dir)
        self._files = list(files) if files is not None else None
        self.files_checked = 0
        self.matches: List[VariableMatch] = []

    def target_files(self) -> List[Path]:
        if self._files is not None:
            return self._files
        files = list(self.layout.aggregate_files())
        for profile in self.layout.profiles:
            files.extend(s.path for s in self.layout.screens(profile))
        return files

    def scan(self) -> List[VariableMatch]:
        self.files_checked = 0
        self.matches = []
        for path in self.target_files():
            if not path.is_file():
                continue
            self.files_checked += 1
            found = find_unresolved(self.layout.read_text(path), self.layout.rel(path))
            self.matches.extend(found)
        logger.debug(
            f"Scanned {self.files_checked} files, {len(self.matches)} unresolved tokens"
        )
        return self.matches

    def by_file(self) -> Dict[str, List[VariableMatch]]:
        grouped: Dict[str, List[VariableMatch]] = {}
        for m in self.matches:
            grouped.setdefault(m.file, []).append(m)
        return grouped

    def by_variable(self) -> Dict[str, List[VariableMatch]]:
        grouped: Dict[str, List[VariableMatch]] = {}
        for m in self.matches:
            grouped.setdefault(m.name, []).append(m)
        return grouped

    def validate(self) -> ValidationResult:
        self.scan()
        if not self.matches:
            return ValidationResult.from_checks([
                CheckResult(
                    name="template-variables",
                    passed=True,
                    detail=f"No unresolved variables in {self.files_checked} files",
                )
            ])

        checks = []
        for file, found in self.by_file().items():
            lines = "; ".join(f"Line {m.line}: {m.token}" for m in found)
            checks.append(CheckResult(
                name=f"template-variables: {file}",
                passed=False,
                detail=lines,
            ))
        for name in self.by_variable():
            checks.append(CheckResult(
                name=f"template-variables: {{{{{name}}}}}",
                passed=False,
                detail=f"Replace with {remediation_hint(name)}",
            ))
        return ValidationResult.from_checks(checks)

"""Embedded screen path validation for diagrams and the device preview.

Every iframe ``src``, ``loadScreen('...')`` argument and ``data-iphone``
attribute must point at a screen file that exists. Missing files block.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from ..layout import IPAD, ProjectLayout
from ..models import CheckResult, ValidationResult

logger = logging.getLogger("uiflow.validators.iframe_src")

IFRAME_SRC_RE = re.compile(r"<iframe[^>]*\bsrc=[\"']([^\"']+\.html)[\"']", re.IGNORECASE)
LOAD_SCREEN_RE = re.compile(r"loadScreen\(\s*['\"]([^'\"]+\.html)['\"]")
DATA_IPHONE_RE = re.compile(r"data-iphone=\"([^\"]+)\"")


@dataclass
class SourceCheck:
    """Referenced paths found in one aggregate file."""
    file: str
    total: int = 0
    missing: List[str] = field(default_factory=list)
    exists: bool = True


def _unique(values: List[str]) -> List[str]:
    return list(dict.fromkeys(values))


class IframeSrcValidator:
    def __init__(self, project_dir: Path):
        self.layout = ProjectLayout(project_dir)
        self.sources: Dict[str, SourceCheck] = {}

    def _check_paths(self, label: str, base: Path, paths: List[str]) -> SourceCheck:
        result = SourceCheck(file=label, total=len(paths))
        for src in paths:
            target = (base / src).resolve()
            if not target.is_file():
                result.missing.append(src)
        self.sources[label] = result
        return result

    def run(self) -> Dict[str, SourceCheck]:
        self.sources = {}
        for profile in self.layout.profiles:
            diagram = self.layout.diagram(profile)
            label = self.layout.rel(diagram)
            if not diagram.is_file():
                self.sources[label] = SourceCheck(file=label, exists=False)
                continue
            content = self.layout.read_text(diagram)
            # Diagram paths are relative to docs/
            self._check_paths(label, diagram.parent, IFRAME_SRC_RE.findall(content))

        preview = self.layout.device_preview
        label = self.layout.rel(preview)
        if not preview.is_file():
            self.sources[label] = SourceCheck(file=label, exists=False)
        else:
            content = self.layout.read_text(preview)
            root = self.layout.root
            self._check_paths(f"{label} loadScreen", root, _unique(LOAD_SCREEN_RE.findall(content)))
            self._check_paths(f"{label} iframe", root, _unique(IFRAME_SRC_RE.findall(content)))
            self._check_paths(f"{label} data-iphone", root, _unique(DATA_IPHONE_RE.findall(content)))
        return self.sources

    def validate(self) -> ValidationResult:
        self.run()
        checks: List[CheckResult] = []
        for label, src in self.sources.items():
            if not src.exists:
                checks.append(CheckResult(
                    name=f"iframe-src: {label}",
                    passed=False,
                    detail=f"{label} missing",
                ))
                continue
            if src.missing:
                checks.append(CheckResult(
                    name=f"iframe-src: {label}",
                    passed=False,
                    detail=f"{len(src.missing)}/{src.total} paths missing: " + ", ".join(src.missing[:10]),
                ))
            else:
                checks.append(CheckResult(
                    name=f"iframe-src: {label}",
                    passed=True,
                    detail=f"{src.total} paths valid",
                ))

        expected = len(self.layout.screens(IPAD.name))
        for profile in self.layout.profiles:
            label = self.layout.rel(self.layout.diagram(profile))
            src = self.sources.get(label)
            if src is None or not src.exists:
                continue
            checks.append(CheckResult(
                name=f"iframe-src: {label} count",
                passed=src.total == expected,
                detail=f"{src.total} embedded screens, {expected} screens on disk",
                severity="warning",
            ))
        return ValidationResult.from_checks(checks)

"""Prototype project layout: device profiles, screen discovery, aggregate paths.

Wide-profile (ipad) renderings live in per-module folders at the project
root; narrow-profile (iphone) renderings live flat under ``iphone/``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger("uiflow.layout")

SCREEN_FILE_RE = re.compile(r"^SCR-[A-Za-z0-9]+-.+\.html$")
SCREEN_ID_RE = re.compile(r"^SCR-([A-Z0-9]+)-(\d{3})-([a-z0-9-]+)$", re.IGNORECASE)

# Top-level directories that never hold wide-profile screens
NON_MODULE_DIRS = {"iphone", "docs", "shared", "screenshots", "workspace", "node_modules"}

OVERVIEW_FILE = "index.html"
DEVICE_PREVIEW_FILE = "device-preview.html"


@dataclass(frozen=True)
class DeviceProfile:
    """One device viewport rendering of the screen set."""

    name: str
    width: int
    height: int
    source_dir: Optional[str]  # None = module folders at project root
    screenshot_dir: str

    @property
    def diagram_file(self) -> str:
        return f"docs/ui-flow-diagram-{self.name}.html"


IPAD = DeviceProfile("ipad", 1194, 834, None, "screenshots/ipad")
IPHONE = DeviceProfile("iphone", 393, 852, "iphone", "screenshots/iphone")

PROFILES: Dict[str, DeviceProfile] = {IPAD.name: IPAD, IPHONE.name: IPHONE}


@dataclass(frozen=True)
class ScreenArtifact:
    """A single rendering of a logical screen under one profile."""

    screen_id: str
    module: str
    profile: str
    path: Path

    @property
    def sequence(self) -> Optional[int]:
        match = SCREEN_ID_RE.match(self.screen_id)
        return int(match.group(2)) if match else None


def parse_module(screen_id: str) -> str:
    """SCR-AUTH-001-login -> AUTH."""
    parts = screen_id.split("-")
    return parts[1].upper() if len(parts) > 2 else ""


@dataclass
class ProjectLayout:
    """Filesystem view of a prototype project rooted at ``root``."""

    root: Path
    profiles: Dict[str, DeviceProfile] = field(default_factory=lambda: dict(PROFILES))

    def __post_init__(self):
        self.root = Path(self.root)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    @property
    def overview(self) -> Path:
        return self.root / OVERVIEW_FILE

    @property
    def device_preview(self) -> Path:
        return self.root / DEVICE_PREVIEW_FILE

    def diagram(self, profile: str) -> Path:
        return self.root / self.profiles[profile].diagram_file

    def aggregate_files(self) -> List[Path]:
        return [self.overview, self.device_preview] + [
            self.diagram(p) for p in self.profiles
        ]

    def rel(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)

    # ------------------------------------------------------------------
    # Screens
    # ------------------------------------------------------------------

    def module_dirs(self) -> List[Path]:
        if not self.root.is_dir():
            return []
        return sorted(
            p for p in self.root.iterdir()
            if p.is_dir() and p.name not in NON_MODULE_DIRS and not p.name.startswith(".")
        )

    def screens(self, profile: str) -> List[ScreenArtifact]:
        """Enumerate screen renderings for one profile, sorted by relative path."""
        prof = self.profiles[profile]
        if prof.source_dir is None:
            dirs = self.module_dirs()
        else:
            dirs = [self.root / prof.source_dir]

        found: List[ScreenArtifact] = []
        for d in dirs:
            if not d.is_dir():
                continue
            for f in sorted(d.iterdir()):
                if f.is_file() and SCREEN_FILE_RE.match(f.name):
                    sid = f.stem
                    found.append(ScreenArtifact(sid, parse_module(sid), profile, f))
        return found

    def screen_counts(self) -> Dict[str, int]:
        return {p: len(self.screens(p)) for p in self.profiles}

    def modules(self) -> List[str]:
        """Module folder names that hold at least one wide-profile screen."""
        return sorted({s.path.parent.name for s in self.screens(IPAD.name)})

    def module_counts(self) -> Dict[str, int]:
        """Wide-profile screens per module id (from the SCR-<MODULE> prefix)."""
        counts: Dict[str, int] = {}
        for s in self.screens(IPAD.name):
            counts[s.module] = counts.get(s.module, 0) + 1
        return counts

    def expected_source(self, screen_id: str, profile: str) -> Path:
        """Where a screen's rendering should live for a profile."""
        prof = self.profiles[profile]
        if prof.source_dir is not None:
            return self.root / prof.source_dir / f"{screen_id}.html"
        module = parse_module(screen_id).lower()
        return self.root / module / f"{screen_id}.html"

    def screenshot_path(self, screen_id: str, profile: str) -> Path:
        return self.root / self.profiles[profile].screenshot_dir / f"{screen_id}.png"

    def screenshot_count(self, profile: str) -> int:
        d = self.root / self.profiles[profile].screenshot_dir
        if not d.is_dir():
            return 0
        return sum(1 for f in d.iterdir() if f.suffix == ".png")

    def screen_ids(self) -> List[str]:
        """Union of logical screen ids across profiles, wide profile first."""
        seen: Dict[str, None] = {}
        for p in self.profiles:
            for s in self.screens(p):
                seen.setdefault(s.screen_id, None)
        return list(seen)

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8", errors="replace")

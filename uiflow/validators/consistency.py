"""Aggregate artifact consistency against the reference standard.

Categories (each independent, each finding pass / warn / fail):

1. File Structure: required root, docs and shared files
2. Device Specs (<profile>): frame width/height, scale, accessory
3. Required Elements: structural markers in diagrams and device preview
4. Function Behavior: openScreen redirect, device switcher, URL params
5. CSS Consistency: module color tokens and badge classes
6. Diagram No Legend: per-profile diagrams must not re-embed the legend
   the overview already owns (hard failure)
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

from .. import settings
from ..layout import ProjectLayout
from ..models import ConsistencyFinding, ConsistencyReport, FindingStatus
from ..standards import ReferenceStandard, load_standard

logger = logging.getLogger("uiflow.validators.consistency")

NO_LEGEND = "Diagram No Legend"


class ConsistencyValidator:
    """Check generated aggregates against a versioned reference standard."""

    def __init__(
        self,
        project_dir: Path,
        standard: Optional[ReferenceStandard] = None,
        standard_source: str = "",
    ):
        self.layout = ProjectLayout(project_dir)
        if standard is None:
            standard, path = load_standard(self.layout.root)
            standard_source = str(path)
        self.standard = standard
        self.standard_source = standard_source
        self._findings: List[ConsistencyFinding] = []
        self._cache: Dict[Path, Optional[str]] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _add(self, category: str, status: FindingStatus, message: str) -> None:
        self._findings.append(ConsistencyFinding(category=category, status=status, message=message))

    def _read(self, rel: str) -> Optional[str]:
        path = self.layout.root / rel
        if path not in self._cache:
            self._cache[path] = self.layout.read_text(path) if path.is_file() else None
        return self._cache[path]

    def _expand(self, files: List[str]) -> List[str]:
        out = []
        for f in files:
            if "{profile}" in f:
                out.extend(f.replace("{profile}", p) for p in self.layout.profiles)
            else:
                out.append(f)
        return out

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def check_file_structure(self) -> None:
        category = "File Structure"
        req = self.standard.required_files
        for name in req.root:
            self._exists(category, name, "fail")
        for name in req.docs:
            self._exists(category, f"docs/{name}", "fail")
        for name in req.shared:
            self._exists(category, f"shared/{name}", "warn")

    def _exists(self, category: str, rel: str, missing: FindingStatus) -> None:
        if (self.layout.root / rel).is_file():
            self._add(category, "pass", f"{rel} exists")
        else:
            suffix = " (optional)" if missing == "warn" else ""
            self._add(category, missing, f"{rel} missing{suffix}")

    def check_device_specs(self, profile: str) -> None:
        category = f"Device Specs ({profile})"
        device = self.standard.devices.get(profile)
        if device is None:
            self._add(category, "warn", f"No device standard for {profile}")
            return
        rel = self.layout.profiles[profile].diagram_file
        content = self._read(rel)
        if content is None:
            self._add(category, "fail", f"{rel} not found")
            return

        for dim, value in (("width", device.frame.width), ("height", device.frame.height)):
            if re.search(rf"\b{dim}:\s*{re.escape(value)}", content):
                self._add(category, "pass", f"Frame {dim}: {value}")
            else:
                self._add(category, "fail", f"Frame {dim} should be {value}")

        if device.scale:
            if device.scale in content:
                self._add(category, "pass", f"Scale factor: {device.scale}")
            else:
                self._add(category, "fail", f"Scale factor should be {device.scale}")

        if device.accessory is not None:
            acc = device.accessory
            if all(re.search(p, content) for p in acc.patterns):
                self._add(category, "pass", f"{acc.name.capitalize()} style present")
            else:
                self._add(category, "warn", f"{acc.name.capitalize()} style may differ")

    def check_required_elements(self) -> None:
        category = "Required Elements"
        for element in self.standard.required_elements:
            for rel in self._expand(element.files):
                content = self._read(rel)
                if content is None:
                    # Missing files are reported under File Structure
                    continue
                hits = sum(len(re.findall(p, content)) for p in element.patterns)
                if hits:
                    self._add(category, "pass", f"{rel}: {element.name} present ({hits})")
                elif element.mandatory:
                    self._add(category, "fail", f"{rel}: {element.name} missing")
                else:
                    self._add(category, "warn", f"{rel}: {element.name} may be missing")

    def check_function_behavior(self) -> None:
        category = "Function Behavior"
        funcs = self.standard.functions
        open_screen = re.compile(funcs.open_screen_pattern)

        for profile, prof in self.layout.profiles.items():
            rel = prof.diagram_file
            content = self._read(rel)
            if content is None:
                continue
            if open_screen.search(content) or "device-preview.html" in content:
                self._add(category, "pass", f"{rel}: openScreen() opens device-preview.html")
            else:
                self._add(category, "fail", f"{rel}: openScreen() should open device-preview.html")

            link = funcs.device_switcher.get(profile)
            if link:
                if link in content:
                    self._add(category, "pass", f"{rel}: links to {link}")
                else:
                    self._add(category, "warn", f"{rel}: may not link to {link}")

        content = self._read(self.layout.rel(self.layout.device_preview))
        if content is not None:
            if any(m in content for m in funcs.url_parameter_markers):
                self._add(category, "pass", "device-preview.html: URL parameters supported")
            elif "device=" in content and "screen=" in content:
                self._add(category, "pass", "device-preview.html: URL parameters referenced")
            else:
                self._add(category, "warn", "device-preview.html: URL parameter handling may be incomplete")

    def check_css_consistency(self) -> None:
        category = "CSS Consistency"
        colors = self.standard.module_colors
        combined = "".join(self._read(f) or "" for f in self.standard.style_files)
        combined_lower = combined.lower()

        if not colors:
            self._add(category, "warn", "No module colors defined in the reference standard")
            return

        on_disk = set(self.layout.module_counts())
        modules = [m for m in colors if m in on_disk] if on_disk else list(colors)
        if not modules:
            self._add(
                category, "warn",
                f"No standard colors for modules: {', '.join(sorted(on_disk))}",
            )
            return

        found = sum(1 for m in modules if colors[m].lower() in combined_lower)
        ratio = settings.CONSISTENCY_COLOR_RATIO
        if found >= len(modules) * ratio:
            self._add(category, "pass", f"Module colors defined: {found}/{len(modules)}")
        elif found > 0:
            self._add(category, "warn", f"Module colors partially defined: {found}/{len(modules)}")
        else:
            self._add(category, "fail", "Module colors not defined")

        badges = sum(1 for m in modules if f"badge-{m.lower()}" in combined_lower)
        if badges >= len(modules) * ratio:
            self._add(category, "pass", f"badge-<module> classes: {badges}/{len(modules)}")
        else:
            self._add(category, "warn", f"badge-<module> classes: {badges}/{len(modules)}")

    def check_diagram_no_legend(self) -> None:
        """Per-profile diagrams must not carry the module legend."""
        modules = set(self.layout.module_counts()) | set(self.standard.module_colors)
        counts_re = None
        if modules:
            alt = "|".join(sorted(re.escape(m) for m in modules))
            counts_re = re.compile(rf"\b(?:{alt})\s*\(\d+\)", re.IGNORECASE)

        for profile in self.layout.profiles:
            rel = self.layout.profiles[profile].diagram_file
            content = self._read(rel)
            if content is None:
                continue
            markers = [m for m in self.standard.legend_markers if m in content]
            if markers:
                self._add(
                    NO_LEGEND, "fail",
                    f"{rel} embeds the module legend ({', '.join(markers)}); "
                    "remove it, index.html owns the legend",
                )
            elif counts_re is not None and counts_re.search(content):
                self._add(NO_LEGEND, "warn", f"{rel} may contain module counts (duplicate legend?)")
            else:
                self._add(NO_LEGEND, "pass", f"{rel} has no duplicate module legend")

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def validate(self) -> ConsistencyReport:
        self._findings = []
        self._cache = {}
        self.check_file_structure()
        for profile in self.layout.profiles:
            self.check_device_specs(profile)
        self.check_required_elements()
        self.check_function_behavior()
        self.check_css_consistency()
        self.check_diagram_no_legend()

        report = ConsistencyReport(
            standard_version=self.standard.version,
            standard_source=self.standard_source,
            findings=list(self._findings),
        )
        logger.info(
            f"Consistency: {report.count('pass')} passed, {report.count('warn')} warnings, "
            f"{report.count('fail')} failed (standard v{report.standard_version})"
        )
        return report

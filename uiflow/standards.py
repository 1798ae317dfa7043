"""Reference standard schema and lookup.

The standard is a small versioned JSON document describing the aggregate
files a prototype must ship, per-profile device frame sizing, required
structural markers and the color token assigned to each module.

Lookup order (first match wins):
    <project>/standards.json
    <project>/workspace/standards.json
    $UIFLOW_STANDARDS_PATH
    $UIFLOW_HOME/standards.json
    packaged default (uiflow/reference/standards.json)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from . import config
from .errors import StandardsNotFoundError

logger = logging.getLogger("uiflow.standards")


class FrameSize(BaseModel):
    width: str
    height: str


class DeviceAccessory(BaseModel):
    """Camera / notch marker. Missing accessories only warn."""
    name: str
    patterns: List[str] = Field(default_factory=list)


class DeviceStandard(BaseModel):
    frame: FrameSize
    scale: str = ""
    accessory: Optional[DeviceAccessory] = None


class RequiredFiles(BaseModel):
    root: List[str] = Field(default_factory=list)
    docs: List[str] = Field(default_factory=list)
    shared: List[str] = Field(default_factory=list)


class RequiredElement(BaseModel):
    """A structural marker that must appear in the listed files.

    ``files`` may contain ``{profile}``, expanded once per device profile.
    ``patterns`` are regular expressions; any match satisfies the element.
    """
    name: str
    patterns: List[str]
    files: List[str]
    mandatory: bool = False


class FunctionStandard(BaseModel):
    open_screen_pattern: str = r"device-preview\.html\?[^\"'`]*screen="
    device_switcher: Dict[str, str] = Field(default_factory=dict)
    url_parameter_markers: List[str] = Field(default_factory=lambda: ["URLSearchParams"])


class ReferenceStandard(BaseModel):
    version: str
    required_files: RequiredFiles = Field(default_factory=RequiredFiles)
    devices: Dict[str, DeviceStandard] = Field(default_factory=dict)
    required_elements: List[RequiredElement] = Field(default_factory=list)
    functions: FunctionStandard = Field(default_factory=FunctionStandard)
    module_colors: Dict[str, str] = Field(default_factory=dict)
    style_files: List[str] = Field(default_factory=list)
    legend_markers: List[str] = Field(
        default_factory=lambda: ['class="legend"', "legend-item", "legend-color"]
    )


def candidate_paths(project_dir: Path) -> List[Path]:
    project_dir = Path(project_dir)
    paths = [
        project_dir / "standards.json",
        project_dir / config.WORKSPACE_DIR / "standards.json",
    ]
    if config.STANDARDS_PATH:
        paths.append(Path(config.STANDARDS_PATH))
    paths.append(config.UIFLOW_HOME / "standards.json")
    paths.append(config.PACKAGED_STANDARDS)
    return paths


def load_standard(
    project_dir: Path,
    candidates: Optional[List[Path]] = None,
) -> Tuple[ReferenceStandard, Path]:
    """Return the first reference standard found and the path it came from.

    Raises:
        StandardsNotFoundError: No candidate location holds a standard
    """
    searched = candidates if candidates is not None else candidate_paths(project_dir)
    for path in searched:
        if path.is_file():
            data = json.loads(path.read_text(encoding="utf-8"))
            standard = ReferenceStandard.model_validate(data)
            logger.debug(f"Reference standard v{standard.version} from {path}")
            return standard, path
    raise StandardsNotFoundError(searched)

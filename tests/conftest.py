"""Root conftest.

Provides:
- ``project``: a complete, consistent prototype project in tmp_path
- ``state``: WorkspaceState bound to that project
- ``standard``: the packaged reference standard
"""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.factories import build_project
from uiflow.config import PACKAGED_STANDARDS
from uiflow.standards import load_standard
from uiflow.state import WorkspaceState


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Prototype project at tmp_path/prototype (tmp_path is the document root)."""
    return build_project(tmp_path / "prototype")


@pytest.fixture
def state(project: Path) -> WorkspaceState:
    return WorkspaceState(project)


@pytest.fixture
def standard():
    std, _ = load_standard(Path("."), candidates=[PACKAGED_STANDARDS])
    return std


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path: Path):
    """Keep user-level config and log files out of the tests."""
    monkeypatch.setattr("uiflow.config.UIFLOW_HOME", tmp_path / ".uiflow-home")
    monkeypatch.setattr("uiflow.config.STANDARDS_PATH", "")
    monkeypatch.setattr("uiflow.logging_config.LOG_DIR", tmp_path / ".logs")

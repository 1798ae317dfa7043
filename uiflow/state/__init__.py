"""Workspace state persistence."""

from .workspace import WorkspaceState, default_document

__all__ = ["WorkspaceState", "default_document"]

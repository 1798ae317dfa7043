"""Exception hierarchy.

Validators report expected failures as results; these exceptions cover
usage errors and conditions the pipeline cannot recover from.
"""


class UiflowError(Exception):
    """Base class for all pipeline errors."""


class UnknownPhaseError(UiflowError, ValueError):
    """Raised when a phase id is neither canonical nor a known alias."""


class WorkspaceStateError(UiflowError):
    """Raised when the workspace document cannot be read or written."""


class TransitionError(UiflowError):
    """Raised when a requested transition violates the phase order."""


class StandardsNotFoundError(UiflowError):
    """Raised when no reference standard exists at any candidate location."""

    def __init__(self, searched):
        self.searched = [str(p) for p in searched]
        super().__init__(
            "standards.json not found. Searched: " + ", ".join(self.searched)
        )


class CaptureError(UiflowError):
    """Raised when the browser driver cannot be started at all."""


class CaptureAttemptError(UiflowError):
    """Raised by a capture driver when one attempt fails; the caller retries."""

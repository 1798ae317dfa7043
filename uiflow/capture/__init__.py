"""Headless-browser snapshot capture with retry and an error ledger."""

from .capture import ArtifactCapture, CaptureTarget
from .driver import CaptureDriver, PlaywrightDriver
from .ledger import ErrorLedgerStore

__all__ = [
    "ArtifactCapture",
    "CaptureDriver",
    "CaptureTarget",
    "ErrorLedgerStore",
    "PlaywrightDriver",
]

"""Pipeline runtime settings: tunable parameters for gates and capture.

All values read from environment variables with defaults matching the
reference behavior. Import from here instead of hardcoding.

Path config (project dir, standards location) stays in uiflow/config.py.
"""

from __future__ import annotations

import os


def _int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


def _str(key: str, default: str) -> str:
    return os.getenv(key, default)


def _bool(key: str, default: bool) -> bool:
    return os.getenv(key, "true" if default else "false").lower() in ("true", "1", "yes")


# =====================================================================
# Snapshot Capture
# =====================================================================

# Attempts per screen × profile before a permanent ledger entry is written
CAPTURE_MAX_ATTEMPTS = _int("CAPTURE_MAX_ATTEMPTS", 3)

# Backoff between attempts (seconds, multiplied by attempt number)
CAPTURE_RETRY_BACKOFF = _float("CAPTURE_RETRY_BACKOFF", 1.0)

# Page load timeout per attempt (milliseconds)
CAPTURE_NAV_TIMEOUT_MS = _int("CAPTURE_NAV_TIMEOUT_MS", 10000)

# Grace period after load for fonts/animations (seconds)
CAPTURE_SETTLE_DELAY = _float("CAPTURE_SETTLE_DELAY", 0.5)

# Required clickable-element coverage (percent) before capture may start
CAPTURE_COVERAGE_THRESHOLD = _float("CAPTURE_COVERAGE_THRESHOLD", 100.0)

# Block capture when coverage is below threshold
CAPTURE_BLOCK_ON_COVERAGE = _bool("CAPTURE_BLOCK_ON_COVERAGE", True)

# Browser engine: "chromium" | "firefox" | "webkit"
CAPTURE_BROWSER = _str("CAPTURE_BROWSER", "chromium")


# =====================================================================
# Validators
# =====================================================================

# Fraction of module colors that must appear for CSS consistency to pass
CONSISTENCY_COLOR_RATIO = _float("CONSISTENCY_COLOR_RATIO", 0.7)

# Placeholder text the overview shows before screens are generated
OVERVIEW_PLACEHOLDER_TEXT = _str("OVERVIEW_PLACEHOLDER_TEXT", "尚未產生畫面")

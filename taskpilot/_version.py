"""Centralized version constant for taskpilot."""

# Note: TASKPILOT_GIT_COMMIT is populated at build time so wheels/sdists carry
# the commit even when git metadata is unavailable at runtime.
TASKPILOT_VERSION = "0.4.0"
TASKPILOT_GIT_COMMIT = "unknown"

__all__ = ["TASKPILOT_VERSION", "TASKPILOT_GIT_COMMIT"]

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Configuration constants and settings for taskpilot."""

import os
import pathlib


def _env_flag(name: str, default: bool) -> bool:
    """Parse a boolean environment variable (1/true/yes/on)."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# Workspace
ROOT = pathlib.Path(os.getcwd()).resolve()
TASKPILOT_DIR = ROOT / ".taskpilot"
LOGS_DIR = TASKPILOT_DIR / "logs"
EVENTS_FILE = pathlib.Path(os.getenv("TASKPILOT_EVENTS_FILE", str(TASKPILOT_DIR / "events.jsonl")))
PERSIST_EVENTS = _env_flag("TASKPILOT_PERSIST_EVENTS", True)

# Directories never searched or snapshotted
EXCLUDE_DIRS = {
    ".git", "node_modules", "__pycache__", ".taskpilot", ".venv", "venv",
    "dist", "build", ".pytest_cache", ".mypy_cache",
}

# Orchestration loop
MAX_REPLANNING = int(os.getenv("TASKPILOT_MAX_REPLANNING", "5"))
MAX_PLANNING_ATTEMPTS = int(os.getenv("TASKPILOT_MAX_PLANNING_ATTEMPTS", "3"))
INTELLIGENT_VALIDATION = _env_flag("TASKPILOT_INTELLIGENT_VALIDATION", True)
AUTO_REPLANNING = _env_flag("TASKPILOT_AUTO_REPLANNING", True)

# Plan acceptance thresholds (0-100)
VALIDATION_ACCEPT_CONFIDENCE = 70
VALIDATION_OPTIMIZED_CONFIDENCE = 60
REPLAN_MIN_CONFIDENCE = 60

# Failure-rate fallbacks used when the evaluator cannot answer
REPLAN_FAILURE_RATE_ON_PARSE_ERROR = 0.3
REPLAN_FAILURE_RATE_ON_CALL_ERROR = 0.5

# LLM provider
LLM_PROVIDER = os.getenv("TASKPILOT_LLM_PROVIDER", "ollama").lower().strip()
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "qwen2.5-coder:7b")
OLLAMA_NUM_CTX = int(os.getenv("OLLAMA_NUM_CTX", "16384"))
OLLAMA_TOP_P = float(os.getenv("OLLAMA_TOP_P", "0.9"))
OLLAMA_TOP_K = int(os.getenv("OLLAMA_TOP_K", "40"))
OLLAMA_TIMEOUT = int(os.getenv("OLLAMA_TIMEOUT", "600"))
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-5-mini")
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "120"))
LLM_MAX_RETRIES = int(os.getenv("TASKPILOT_LLM_MAX_RETRIES", "3"))
LLM_RETRY_BACKOFF_SECONDS = float(os.getenv("TASKPILOT_LLM_RETRY_BACKOFF_SECONDS", "2.0"))
LLM_RETRY_BACKOFF_MAX_SECONDS = float(os.getenv("TASKPILOT_LLM_RETRY_BACKOFF_MAX_SECONDS", "30.0"))

# Tools
COMMAND_TIMEOUT = int(os.getenv("TASKPILOT_COMMAND_TIMEOUT", "60"))
MAX_FILE_BYTES = int(os.getenv("TASKPILOT_MAX_FILE_BYTES", str(2 * 1024 * 1024)))
SNAPSHOT_MAX_FILES = int(os.getenv("TASKPILOT_SNAPSHOT_MAX_FILES", "500"))

# Logging configuration
LOG_RETENTION_LIMIT = int(os.getenv("TASKPILOT_LOG_RETENTION", "20"))


def set_model(model_name: str) -> None:
    """Update the active model for the configured provider."""
    global OLLAMA_MODEL, OPENAI_MODEL
    if LLM_PROVIDER == "openai":
        OPENAI_MODEL = model_name
    else:
        OLLAMA_MODEL = model_name


def active_model() -> str:
    return OPENAI_MODEL if LLM_PROVIDER == "openai" else OLLAMA_MODEL

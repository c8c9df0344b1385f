"""
Core constants for the approval engine.

This module defines system-wide constants used across the codebase.
No magic constants in code.
"""

# Config documents
CONFIG_VERSION = 1
RELOAD_DEBOUNCE_SECONDS = 0.2  # 200ms - collapses bursts of filesystem events

# Session lifecycle
SESSION_TTL_SECONDS = 24 * 60 * 60  # 24 hours of inactivity before a session is pruned
PRUNE_INTERVAL_SECONDS = 60 * 60  # 1 hour between prune sweeps

# Command decomposition
MAX_UNWRAP_DEPTH = 5  # nested wrapper commands unwrapped at most this many times

# Interactive approvals
PROMPT_TIMEOUT_SECONDS = 300  # 5 minutes before an unanswered prompt is rejected

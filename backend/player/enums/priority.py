"""
Reload notification priority and reason.
"""

from __future__ import annotations

from enum import Enum


class ReloadPriority(str, Enum):
    """HIGH acts immediately; NORMAL and LOW are debounced."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class ReloadReason(str, Enum):
    """Why a configuration reload was requested."""

    SETTINGS_UPDATED = "settings_updated"
    STREAM_CHANGED = "stream_changed"
    MANUAL_REFRESH = "manual_refresh"
    ERROR_RECOVERY = "error_recovery"

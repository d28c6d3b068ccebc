"""
Role of a candidate stream endpoint.
"""

from __future__ import annotations

from enum import Enum


class EndpointRole(str, Enum):
    """Where a candidate URL came from."""

    PRIMARY = "primary"
    LAST_WORKING = "last_working"
    ENVIRONMENT_FALLBACK = "environment_fallback"

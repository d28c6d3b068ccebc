"""
Platform capability flags.

Injected at construction instead of sniffing the platform at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PlatformCapabilities:
    """
    requires_cache_busting:
        The platform's network stack caches streaming responses; every
        attempt URL gets a random token in addition to the timestamp.

    requires_full_reset:
        A stalled pipeline cannot be recovered by pause/play; the adapter's
        underlying resource is destroyed and recreated before reconnecting.
    """
    requires_cache_busting: bool = False
    requires_full_reset: bool = False

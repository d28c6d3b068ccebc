"""
Endpoint resolver (pure).

Holds the ordered candidate endpoints for one station and decides which
one to try after a failure. Contains NO timers, NO async, NO I/O.

Candidate order:
    1. primary
    2. last-known-working, if set and different from primary
    3. environment fallback, if set and different from both of the above

A cascade walks this list once, starting at the primary. When the failed
endpoint is the last entry the cascade is exhausted and the caller hands off
to the reconnect scheduler. An endpoint dropped by a rebuild restarts the
cascade at the (new) primary.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from constants import (
    CACHE_BUST_FALLBACK_PARAM,
    CACHE_BUST_TIMESTAMP_PARAM,
    CACHE_BUST_TOKEN_PARAM,
)
from player.enums.endpoint_role import EndpointRole


@dataclass(frozen=True)
class StreamEndpoint:
    """A candidate stream URL with its role. Immutable."""
    url: str
    role: EndpointRole


@dataclass(frozen=True)
class EndpointResolver:
    """
    Immutable resolver state.

    last_attempted is bookkeeping for observability; cascade decisions are
    made from the failed endpoint passed to next().
    """

    primary_url: str
    fallback_url: str | None = None
    last_working_url: str | None = None
    last_attempted_url: str | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def primary(self) -> StreamEndpoint:
        return StreamEndpoint(url=self.primary_url, role=EndpointRole.PRIMARY)

    def candidates(self) -> tuple[StreamEndpoint, ...]:
        """Ordered, de-duplicated candidate list (at most 3 entries)."""
        out = [self.primary()]
        seen = {self.primary_url}

        if self.last_working_url and self.last_working_url not in seen:
            out.append(
                StreamEndpoint(url=self.last_working_url, role=EndpointRole.LAST_WORKING)
            )
            seen.add(self.last_working_url)

        if self.fallback_url and self.fallback_url not in seen:
            out.append(
                StreamEndpoint(
                    url=self.fallback_url,
                    role=EndpointRole.ENVIRONMENT_FALLBACK,
                )
            )

        return tuple(out)

    def next(self, after_failure_of: StreamEndpoint) -> StreamEndpoint | None:
        """
        Return the next candidate after a failure, or None if exhausted.

        Never returns the failed URL itself, so two consecutive attempts
        within a cascade always use different URLs. A failed primary that a
        rebuild has since replaced, or a URL no longer in the list, leads to
        the new primary.
        """
        if (
            after_failure_of.role is EndpointRole.PRIMARY
            and after_failure_of.url != self.primary_url
        ):
            return self.primary()

        candidates = self.candidates()
        urls = [c.url for c in candidates]
        try:
            idx = urls.index(after_failure_of.url)
        except ValueError:
            return self.primary()

        remaining = candidates[idx + 1:]
        if not remaining:
            return None
        return remaining[0]

    # ------------------------------------------------------------------
    # Updates (return new resolver)
    # ------------------------------------------------------------------

    def mark_attempted(self, endpoint: StreamEndpoint) -> EndpointResolver:
        return replace(self, last_attempted_url=endpoint.url)

    def mark_working(self, endpoint: StreamEndpoint) -> EndpointResolver:
        """Record a successful connect."""
        return replace(self, last_working_url=endpoint.url)

    def rebuild(
        self,
        *,
        new_primary: str,
        new_fallback: str | None,
    ) -> EndpointResolver:
        """
        Replace the candidate list after a configuration change.

        The last-known-working pointer survives unless it now equals the
        new primary, where it would only duplicate it.
        """
        last_working = self.last_working_url
        if last_working == new_primary:
            last_working = None

        fallback = new_fallback
        if fallback == new_primary:
            fallback = None

        return EndpointResolver(
            primary_url=new_primary,
            fallback_url=fallback,
            last_working_url=last_working,
            last_attempted_url=None,
        )


# =============================================================================
# URL preparation
# =============================================================================

def prepare_url(
    endpoint: StreamEndpoint,
    *,
    now_ms: int,
    token: str | None,
) -> str:
    """
    Append cache-defeating query parameters to an endpoint URL.

    - t=<now_ms> always
    - r=<token> when a token is supplied (platforms that cache streams)
    - fallback=1 for any non-primary role

    Existing query parameters are preserved; stale cache-bust params from a
    previous preparation are replaced.
    """
    parts = urlsplit(endpoint.url)
    reserved = {
        CACHE_BUST_TIMESTAMP_PARAM,
        CACHE_BUST_TOKEN_PARAM,
        CACHE_BUST_FALLBACK_PARAM,
    }
    query = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in reserved
    ]

    query.append((CACHE_BUST_TIMESTAMP_PARAM, str(now_ms)))
    if token:
        query.append((CACHE_BUST_TOKEN_PARAM, token))
    if endpoint.role is not EndpointRole.PRIMARY:
        query.append((CACHE_BUST_FALLBACK_PARAM, "1"))

    return urlunsplit(
        (parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment)
    )

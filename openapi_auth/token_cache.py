"""Expiration-aware access token cache with explicit invalidation.

Holds at most one access token. The token is fetched lazily on first use,
refetched once it expires, and dropped immediately on invalidation. Optional
background renewal is driven by APScheduler.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from openapi_auth.oauth2_flows import TokenResponse

logger = logging.getLogger(__name__)

# Maximum consecutive failures before disabling renewal
MAX_FAILURES = 5

RENEWAL_JOB_ID = "token_renewal"


@dataclass(frozen=True)
class CachedToken:
    """A fetched token and the moment it stops being usable.

    Attributes:
        access_token: The access token string
        token_type: Token type reported by the server
        expires_at: Wall-clock expiry, None if the server gave no lifetime
        generation: Invalidation generation current when the fetch started
    """

    access_token: str
    token_type: str
    expires_at: Optional[datetime]
    generation: int

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class TokenCache:
    """Thread-safe holder of the current access token.

    ``fetch`` performs the blocking call to the token endpoint. It runs
    outside the lock, so concurrent readers may fetch in parallel when the
    cache is empty; the first result stored wins and later ones are
    discarded. ``invalidate`` bumps a generation counter, and a fetch that
    started before the bump is never stored.
    """

    def __init__(
        self,
        fetch: Callable[[], TokenResponse],
        clock: Callable[[], datetime] = datetime.now,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self._fetch = fetch
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Optional[CachedToken] = None
        self._generation = 0
        self._scheduler = scheduler
        self._failure_count = 0

    @property
    def cached(self) -> Optional[CachedToken]:
        with self._lock:
            return self._token

    def current_token(self) -> str:
        """Return a usable access token, fetching one if needed.

        Raises:
            TokenFetchError: If the token endpoint cannot be reached or
                answers with an error
        """
        with self._lock:
            token = self._token
            generation = self._generation
        if token is not None and not token.is_expired(self._clock()):
            logger.debug("Using cached access token")
            return token.access_token

        return self._fetch_and_store(generation, replace_valid=False).access_token

    def refresh(self) -> str:
        """Fetch a new token unconditionally and cache it."""
        with self._lock:
            generation = self._generation
        return self._fetch_and_store(generation, replace_valid=True).access_token

    def invalidate(self) -> None:
        """Drop the cached token; the next access fetches a new one."""
        with self._lock:
            self._generation += 1
            had_token = self._token is not None
            self._token = None
        if had_token:
            logger.info("Access token invalidated")

    def _fetch_and_store(self, generation: int, replace_valid: bool) -> CachedToken:
        started = self._clock()
        response = self._fetch()
        expires_at = None
        if response.expires_in is not None:
            expires_at = started + timedelta(seconds=response.expires_in)
        fetched = CachedToken(
            access_token=response.access_token,
            token_type=response.token_type,
            expires_at=expires_at,
            generation=generation,
        )

        with self._lock:
            if generation != self._generation:
                # Invalidated while fetching; hand the token to this caller only.
                logger.info("Discarding access token fetched before invalidation")
                return fetched
            current = self._token
            if not replace_valid and current is not None and not current.is_expired(self._clock()):
                return current
            self._token = fetched
        logger.info("Cached new access token (expires_in=%s)", response.expires_in)
        return fetched

    def start_renewal(self, interval_minutes: float) -> None:
        """Refresh the token in the background every ``interval_minutes``."""
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler()
        if not self._scheduler.running:
            self._scheduler.start()
        with self._lock:
            self._failure_count = 0
        self._scheduler.add_job(
            func=self._renewal_job,
            trigger="interval",
            minutes=interval_minutes,
            id=RENEWAL_JOB_ID,
            replace_existing=True,
            misfire_grace_time=60,
        )
        logger.info("Scheduled token renewal every %.1f minutes", interval_minutes)

    def cancel_renewal(self) -> None:
        if self._scheduler is not None and self._scheduler.get_job(RENEWAL_JOB_ID) is not None:
            self._scheduler.remove_job(RENEWAL_JOB_ID)
            logger.info("Cancelled token renewal")

    def is_renewal_active(self) -> bool:
        return self._scheduler is not None and self._scheduler.get_job(RENEWAL_JOB_ID) is not None

    def shutdown(self) -> None:
        """Shutdown the scheduler gracefully."""
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def _renewal_job(self) -> None:
        try:
            self.refresh()
        except Exception as e:
            with self._lock:
                self._failure_count += 1
                failures = self._failure_count
            if failures >= MAX_FAILURES:
                self.cancel_renewal()
                logger.error("Token renewal disabled after %d failures: %s", failures, e)
            else:
                logger.error("Token renewal failed (attempt %d): %s", failures, e)
        else:
            with self._lock:
                self._failure_count = 0
            logger.info("Successfully renewed access token")

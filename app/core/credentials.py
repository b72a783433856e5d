"""
Expiry-aware access token cache.

Tokens are keyed by provider name and refreshed lazily: a cached token is
reused until it is within `safety_margin` of its expiry, then the provider's
fetch coroutine is called again. The clock is injectable so tests can move
time forward without sleeping.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
TokenFetcher = Callable[[], Awaitable["AccessToken"]]


@dataclass(frozen=True)
class AccessToken:
    """A bearer token and the moment it stops being valid."""
    value: str
    expires_at: datetime

    @classmethod
    def from_expires_in(cls, value: str, expires_in: int, now: datetime) -> "AccessToken":
        return cls(value=value, expires_at=now + timedelta(seconds=expires_in))


class CredentialCache:
    """Per-provider token cache with a refresh safety margin."""

    def __init__(
        self,
        clock: Clock = datetime.utcnow,
        safety_margin: timedelta = timedelta(seconds=30),
    ):
        self.clock = clock
        self.safety_margin = safety_margin
        self._tokens: Dict[str, AccessToken] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def peek(self, provider: str) -> Optional[AccessToken]:
        """Return the cached token if it is still usable, without refreshing."""
        token = self._tokens.get(provider)
        if token is None:
            return None
        if self.clock() >= token.expires_at - self.safety_margin:
            return None
        return token

    async def get(self, provider: str, fetch: TokenFetcher) -> str:
        """Get a valid token for `provider`, calling `fetch` if none is usable."""
        token = self.peek(provider)
        if token is not None:
            return token.value

        lock = self._locks.setdefault(provider, asyncio.Lock())
        async with lock:
            # Another caller may have refreshed while we waited
            token = self.peek(provider)
            if token is not None:
                return token.value

            logger.debug(f"Refreshing access token for {provider}")
            token = await fetch()
            self._tokens[provider] = token
            return token.value

    def invalidate(self, provider: str) -> None:
        """Drop a token the provider rejected."""
        self._tokens.pop(provider, None)

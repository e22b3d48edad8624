"""Email whitelist checks backed by a TTL cache."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Protocol

from .config import DEFAULT_AUTH_CACHE_TTL_SECONDS
from .errors import AuthCheckFailed
from .models import AuthorizedUser, normalize_email

logger = logging.getLogger(__name__)


class WhitelistStore(Protocol):
    def get_authorized_users(self) -> List[AuthorizedUser]:
        ...

    def get_authorized_user(self, email: str) -> Optional[AuthorizedUser]:
        ...

    def add_authorized_user(self, user: AuthorizedUser) -> bool:
        ...

    def remove_authorized_user(self, email: str) -> bool:
        ...


class AuthorizedEmailCache:
    """Holds the last whitelist read and when it happened.

    ``get()`` reloads once the entry is older than ``ttl`` seconds. If the
    reload fails the previous value is served; with no previous value the
    failure surfaces as :class:`AuthCheckFailed`.
    """

    def __init__(
        self,
        store: WhitelistStore,
        ttl: float = DEFAULT_AUTH_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self.value: Optional[Dict[str, AuthorizedUser]] = None
        self.fetched_at: Optional[float] = None
        self._clock = clock
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        return (
            self.value is not None
            and self.fetched_at is not None
            and self._clock() - self.fetched_at < self.ttl
        )

    async def get(self) -> Dict[str, AuthorizedUser]:
        if self._is_fresh():
            return self.value  # type: ignore[return-value]
        async with self._lock:
            if self._is_fresh():
                return self.value  # type: ignore[return-value]
            try:
                users = await asyncio.to_thread(self.store.get_authorized_users)
            except Exception as exc:
                if self.value is not None:
                    logger.warning("Whitelist reload failed, serving cached copy: %s", exc)
                    return self.value
                logger.error("Whitelist read failed with no cached copy: %s", exc)
                raise AuthCheckFailed(f"Could not load authorized users: {exc}") from exc
            self.value = {normalize_email(user.email): user for user in users}
            self.fetched_at = self._clock()
            return self.value

    def invalidate(self) -> None:
        # the stale value stays around as a fallback for failed reloads
        self.fetched_at = None


class AuthorizationGate:
    """Answers whitelist questions and applies whitelist edits."""

    def __init__(self, store: WhitelistStore, cache: AuthorizedEmailCache) -> None:
        self.store = store
        self.cache = cache

    async def is_authorized(self, email: Optional[str]) -> bool:
        normalized = normalize_email(email)
        if not normalized:
            return False
        return normalized in await self.list_authorized()

    async def list_authorized(self) -> FrozenSet[str]:
        return frozenset(await self.cache.get())

    async def list_users(self) -> List[AuthorizedUser]:
        users = await self.cache.get()
        return [users[email] for email in sorted(users)]

    async def add_authorized(self, email: str, added_by: str) -> bool:
        normalized = normalize_email(email)
        if not normalized:
            return False
        existing = await asyncio.to_thread(self.store.get_authorized_user, normalized)
        if existing is not None:
            return False
        user = AuthorizedUser(
            email=normalized,
            added_by=normalize_email(added_by),
            added_at=datetime.now(timezone.utc).isoformat(),
        )
        added = await asyncio.to_thread(self.store.add_authorized_user, user)
        if added:
            logger.info("%s authorized by %s", normalized, user.added_by)
            self.cache.invalidate()
        return added

    async def remove_authorized(self, email: str, acting_email: Optional[str]) -> bool:
        normalized = normalize_email(email)
        if not normalized or normalized == normalize_email(acting_email):
            return False
        removed = await asyncio.to_thread(self.store.remove_authorized_user, normalized)
        if removed:
            logger.info("%s removed from whitelist by %s", normalized, normalize_email(acting_email))
            self.cache.invalidate()
        return removed

    async def seed(self, emails: Iterable[str], added_by: str = "config") -> int:
        """Add bootstrap emails when the whitelist is still empty."""

        current = await asyncio.to_thread(self.store.get_authorized_users)
        if current:
            return 0
        added = 0
        for email in emails:
            if await self.add_authorized(email, added_by):
                added += 1
        return added


__all__ = ["AuthorizationGate", "AuthorizedEmailCache", "WhitelistStore"]

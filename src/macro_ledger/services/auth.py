"""Bearer token cache and identity helpers."""

import asyncio
import base64
import binascii
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from macro_ledger.adapters.identity_client import IdentityClient
from macro_ledger.domain.tokens import TokenGrant
from macro_ledger.errors import TokenValidationError

_JWT_SEGMENTS = 3

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class _CachedToken:
    id_token: str
    expires_at: datetime


@dataclass
class TokenCache:
    """Holds the current bearer token and refreshes it on expiry.

    The whole check-refresh-store sequence runs under one lock, so concurrent
    callers that find the cache stale share a single refresh instead of each
    spending the refresh token.
    """

    identity_client: IdentityClient
    refresh_token: str
    margin_seconds: int = 60
    clock: Callable[[], datetime] = _utcnow
    _cached: _CachedToken | None = field(default=None, init=False, repr=False)
    _user_id: str | None = field(default=None, init=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    @classmethod
    def from_grant(
        cls, identity_client: IdentityClient, grant: TokenGrant, **kwargs: object
    ) -> "TokenCache":
        """Create a cache already holding a freshly issued grant."""
        cache = cls(identity_client, grant.refresh_token, **kwargs)
        cache.seed(grant)
        return cache

    def seed(self, grant: TokenGrant) -> None:
        """Install a grant obtained outside the cache, e.g. a password sign-in."""
        self._store(grant)

    async def get_token(self) -> str:
        """Return a valid bearer token, refreshing it when needed."""
        async with self._lock:
            cached = self._cached
            if cached is not None and self._is_fresh(cached):
                return cached.id_token
            grant = await self.identity_client.refresh(self.refresh_token)
            self._store(grant)
            _logger.info("Refreshed bearer token, expires in %ss", grant.expires_in)
            return grant.id_token

    async def user_id(self) -> str:
        """Return the user id carried by the current token."""
        if self._user_id is None:
            self._user_id = extract_user_id(await self.get_token())
        return self._user_id

    def _is_fresh(self, cached: _CachedToken) -> bool:
        margin = timedelta(seconds=self.margin_seconds)
        return self.clock() + margin < cached.expires_at

    def _store(self, grant: TokenGrant) -> None:
        expires_at = self.clock() + timedelta(seconds=grant.expires_in)
        self._cached = _CachedToken(id_token=grant.id_token, expires_at=expires_at)
        if grant.refresh_token:
            self.refresh_token = grant.refresh_token


def extract_user_id(token: str) -> str:
    """Read ``user_id`` (or ``sub``) from a JWT payload without verifying it."""
    parts = token.split(".")
    if len(parts) != _JWT_SEGMENTS:
        raise TokenValidationError("Invalid JWT format")
    payload = parts[1]
    padded = payload + "=" * (-len(payload) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(padded))
    except (binascii.Error, ValueError) as exc:
        raise TokenValidationError("JWT payload is not decodable") from exc
    if not isinstance(claims, dict):
        raise TokenValidationError("JWT payload is not an object")
    for claim in ("user_id", "sub"):
        subject = claims.get(claim)
        if isinstance(subject, str) and subject:
            return subject
    raise TokenValidationError("No user_id or sub claim in token")

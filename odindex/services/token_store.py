"""Persistence of the OneDrive OAuth token pair."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from odindex.models import OdAuthToken

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    """The access/refresh token pair as read from the store."""

    access_token: str | None = None
    access_token_expiry: int | None = None
    refresh_token: str | None = None

    def has_valid_access_token(self, now: float) -> bool:
        if not self.access_token:
            return False
        if self.access_token_expiry is None:
            return False
        return now < self.access_token_expiry


class TokenStore:
    """Process-wide key/value store for the token pair.

    The access token entry carries an expiry and reads as absent once it has
    passed. Writes are unconditional: when two refreshes race, the last commit
    wins.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def get_tokens(self) -> TokenPair:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OdAuthToken).where(OdAuthToken.key.in_((ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY)))
            )
            entries = {entry.key: entry for entry in result.scalars()}

        now = self._clock()
        access_entry = entries.get(ACCESS_TOKEN_KEY)
        access_token: str | None = None
        access_token_expiry: int | None = None
        if access_entry is not None and access_entry.expires_at is not None:
            expiry = _as_epoch(access_entry.expires_at)
            if now < expiry:
                access_token = access_entry.value
                access_token_expiry = expiry

        refresh_entry = entries.get(REFRESH_TOKEN_KEY)
        refresh_token = refresh_entry.value if refresh_entry is not None else None
        return TokenPair(
            access_token=access_token,
            access_token_expiry=access_token_expiry,
            refresh_token=refresh_token,
        )

    async def store_tokens(self, access_token: str, expires_in: int, refresh_token: str) -> TokenPair:
        """Persist both tokens in a single transaction.

        ``expires_in`` is the access token lifetime in seconds, as returned by
        the OAuth token endpoint.
        """

        expiry = int(self._clock()) + int(expires_in)
        expires_at = datetime.fromtimestamp(expiry, tz=timezone.utc)
        async with self._session_factory() as session:
            async with session.begin():
                await session.merge(
                    OdAuthToken(key=ACCESS_TOKEN_KEY, value=access_token, expires_at=expires_at)
                )
                await session.merge(
                    OdAuthToken(key=REFRESH_TOKEN_KEY, value=refresh_token, expires_at=None)
                )
        logger.info("Stored OneDrive token pair", extra={"access_token_expiry": expiry})
        return TokenPair(
            access_token=access_token,
            access_token_expiry=expiry,
            refresh_token=refresh_token,
        )


def _as_epoch(value: datetime) -> int:
    # SQLite drops the timezone on the way back
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())

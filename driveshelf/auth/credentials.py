"""
Credential lifecycle for the OneDrive connection.

Keeps the access/refresh token pair current. Refresh tokens rotate: every
successful exchange invalidates the previous one server-side, so at most one
exchange may run per expiry, and it must use the newest refresh token.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Optional, Protocol

from driveshelf.exceptions import AuthError

from .tokens import TokenSet

logger = logging.getLogger(__name__)

RotationCallback = Callable[[str], None]  # new refresh token


class TokenExchanger(Protocol):
    """Anything that can trade a refresh token for a new token set."""

    async def exchange_refresh_token(
        self, refresh_token: str, client_secret: str
    ) -> dict[str, Any]:
        ...


class CredentialManager:
    """
    Owns the backend credentials and refreshes them on demand.

    States:
        Valid: now <= expiry
        Expired: now > expiry, no exchange in flight
        Refreshing: one caller holds the lock and runs the exchange

    Reading the access token never waits. A refresh holds ``_refresh_lock``
    and re-checks the expiry after acquiring it, so callers that queued
    behind a successful refresh return without exchanging again.

    Usage:
        credentials = CredentialManager(client, client_secret, refresh_token)
        await credentials.ensure_fresh()
        headers = credentials.authorization_header()
    """

    def __init__(
        self,
        exchanger: TokenExchanger,
        client_secret: str,
        refresh_token: str,
        access_token: str = "",
        expires_at: float = 0.0,
        on_rotate: Optional[RotationCallback] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize credential manager.

        Args:
            exchanger: Transport performing the refresh exchange
            client_secret: Application client secret
            refresh_token: Current refresh token
            access_token: Known-good access token, if any
            expires_at: Expiry of ``access_token`` (seconds since epoch)
            on_rotate: Called with each new refresh token after an exchange
            clock: Time source, seconds since epoch
        """
        self._exchanger = exchanger
        self._client_secret = client_secret
        self._tokens = TokenSet(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )
        self._on_rotate = on_rotate
        self._clock = clock
        self._refresh_lock = asyncio.Lock()
        self._refresh_count = 0

    @property
    def access_token(self) -> str:
        """Current access token (call ensure_fresh first)."""
        return self._tokens.access_token

    @property
    def expires_at(self) -> float:
        """Absolute expiry of the current access token."""
        return self._tokens.expires_at

    @property
    def is_expired(self) -> bool:
        """True if the access token is missing or past its expiry."""
        return self._tokens.is_expired(self._clock())

    def authorization_header(self) -> dict[str, str]:
        """Bearer header for the current access token."""
        return {"Authorization": f"Bearer {self._tokens.access_token}"}

    def invalidate(self, access_token: Optional[str] = None) -> None:
        """
        Mark the access token expired so the next call refreshes it.

        Args:
            access_token: Token the backend rejected. Ignored unless it is
                still the current one.
        """
        if access_token is not None and access_token != self._tokens.access_token:
            logger.debug("Rejected access token was already replaced")
            return
        if not self.is_expired:
            logger.info("Access token rejected by backend, forcing refresh")
        self._tokens = TokenSet(
            access_token="",
            refresh_token=self._tokens.refresh_token,
            expires_at=0.0,
        )

    async def ensure_fresh(self) -> None:
        """
        Refresh the credentials if they are expired.

        Raises:
            AuthError: If the exchange fails; prior state is left untouched
        """
        if not self.is_expired:
            return

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited
            if not self.is_expired:
                return
            await self._refresh()

    async def _refresh(self) -> None:
        """Run one exchange. Caller holds ``_refresh_lock``."""
        logger.debug("Access token expired, refreshing")
        try:
            response = await self._exchanger.exchange_refresh_token(
                self._tokens.refresh_token, self._client_secret
            )
            tokens = TokenSet.from_response(response, now=self._clock())
        except AuthError as e:
            logger.warning(f"Token refresh failed: {e}")
            raise
        except ValueError as e:
            logger.warning(f"Token refresh returned an unusable response: {e}")
            raise AuthError(str(e)) from e

        self._tokens = tokens
        self._refresh_count += 1
        logger.info(
            f"Access token refreshed (#{self._refresh_count}), valid until "
            f"{time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(tokens.expires_at))}"
        )

        if self._on_rotate is not None:
            try:
                self._on_rotate(tokens.refresh_token)
            except Exception as e:
                logger.warning(f"Refresh token rotation callback failed: {type(e).__name__}")

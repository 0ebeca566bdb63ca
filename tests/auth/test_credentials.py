"""Tests for credential lifecycle management."""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from driveshelf.auth import CredentialManager, TokenSet
from driveshelf.exceptions import AuthError

NOW = 1_700_000_000.0


def token_response(n: int = 1, expires_in: Any = 3600) -> dict[str, Any]:
    return {
        "token_type": "Bearer",
        "access_token": f"access-{n}",
        "refresh_token": f"refresh-{n}",
        "expires_in": expires_in,
    }


class RotatingExchanger:
    """Identity endpoint that invalidates a refresh token once it is used."""

    def __init__(self) -> None:
        self.current = "refresh-0"
        self.calls = 0

    async def exchange_refresh_token(self, refresh_token: str, client_secret: str) -> dict:
        self.calls += 1
        await asyncio.sleep(0.01)
        if refresh_token != self.current:
            raise AuthError("invalid_grant: refresh token already redeemed")
        self.current = f"refresh-{self.calls}"
        return token_response(self.calls)


class TestTokenSet:
    """Tests for TokenSet."""

    def test_empty_is_expired(self) -> None:
        assert TokenSet().is_expired(NOW)

    def test_valid_until_expiry(self) -> None:
        tokens = TokenSet("a", "r", expires_at=NOW + 10)
        assert not tokens.is_expired(NOW)
        assert not tokens.is_expired(NOW + 10)
        assert tokens.is_expired(NOW + 10.5)

    def test_from_response(self) -> None:
        tokens = TokenSet.from_response(token_response(expires_in="3600"), now=NOW)
        assert tokens.access_token == "access-1"
        assert tokens.refresh_token == "refresh-1"
        assert tokens.expires_at == NOW + 3600

    @pytest.mark.parametrize(
        "response",
        [
            {"refresh_token": "r", "expires_in": 10},
            {"access_token": "a", "expires_in": 10},
            {"access_token": "a", "refresh_token": "r"},
            {"access_token": "a", "refresh_token": "r", "expires_in": "soon"},
        ],
    )
    def test_from_response_incomplete(self, response: dict) -> None:
        with pytest.raises(ValueError):
            TokenSet.from_response(response, now=NOW)

    def test_repr_hides_tokens(self) -> None:
        text = repr(TokenSet("secret-access", "secret-refresh", NOW))
        assert "secret" not in text


class TestCredentialManager:
    """Tests for CredentialManager."""

    def make_manager(self, exchanger: Any, **kwargs: Any) -> CredentialManager:
        return CredentialManager(
            exchanger, "client-secret", "refresh-0", clock=lambda: NOW, **kwargs
        )

    def test_starts_expired_without_access_token(self) -> None:
        manager = self.make_manager(MagicMock())
        assert manager.is_expired
        assert manager.access_token == ""

    @pytest.mark.asyncio
    async def test_valid_token_is_not_refreshed(self) -> None:
        exchanger = MagicMock()
        exchanger.exchange_refresh_token = AsyncMock()
        manager = self.make_manager(exchanger, access_token="access-0", expires_at=NOW + 60)

        await manager.ensure_fresh()

        exchanger.exchange_refresh_token.assert_not_awaited()
        assert manager.authorization_header() == {"Authorization": "Bearer access-0"}

    @pytest.mark.asyncio
    async def test_refresh_installs_rotated_tokens(self) -> None:
        exchanger = MagicMock()
        exchanger.exchange_refresh_token = AsyncMock(return_value=token_response(1))
        rotated = MagicMock()
        manager = self.make_manager(exchanger, on_rotate=rotated)

        await manager.ensure_fresh()

        exchanger.exchange_refresh_token.assert_awaited_once_with("refresh-0", "client-secret")
        assert manager.access_token == "access-1"
        assert manager.expires_at == NOW + 3600
        assert manager._refresh_count == 1
        assert not manager.is_expired
        rotated.assert_called_once_with("refresh-1")

    @pytest.mark.asyncio
    async def test_next_refresh_uses_rotated_token(self) -> None:
        exchanger = RotatingExchanger()
        manager = self.make_manager(exchanger)

        await manager.ensure_fresh()
        manager.invalidate()
        await manager.ensure_fresh()

        assert exchanger.calls == 2
        assert manager.access_token == "access-2"

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_state(self) -> None:
        exchanger = MagicMock()
        exchanger.exchange_refresh_token = AsyncMock(side_effect=AuthError("revoked"))
        manager = self.make_manager(exchanger, access_token="old", expires_at=NOW - 1)

        with pytest.raises(AuthError):
            await manager.ensure_fresh()

        assert manager.access_token == "old"
        assert manager.expires_at == NOW - 1
        assert manager.is_expired
        assert not manager._refresh_lock.locked()

    @pytest.mark.asyncio
    async def test_failed_refresh_is_retried_by_next_caller(self) -> None:
        exchanger = MagicMock()
        exchanger.exchange_refresh_token = AsyncMock(
            side_effect=[AuthError("network down"), token_response(1)]
        )
        manager = self.make_manager(exchanger)

        with pytest.raises(AuthError):
            await manager.ensure_fresh()
        await manager.ensure_fresh()

        assert manager.access_token == "access-1"
        assert exchanger.exchange_refresh_token.await_count == 2

    @pytest.mark.asyncio
    async def test_unusable_response_is_auth_error(self) -> None:
        exchanger = MagicMock()
        exchanger.exchange_refresh_token = AsyncMock(return_value={"access_token": "a"})
        manager = self.make_manager(exchanger)

        with pytest.raises(AuthError):
            await manager.ensure_fresh()
        assert manager.access_token == ""

    @pytest.mark.asyncio
    async def test_concurrent_callers_refresh_once(self) -> None:
        """Test only one exchange runs when many callers see an expired token."""
        exchanger = RotatingExchanger()
        manager = self.make_manager(exchanger)

        await asyncio.gather(*(manager.ensure_fresh() for _ in range(5)))

        assert exchanger.calls == 1
        assert manager.access_token == "access-1"
        assert manager._refresh_count == 1

    @pytest.mark.asyncio
    async def test_refresh_after_clock_crosses_expiry(self) -> None:
        now = [NOW]
        exchanger = RotatingExchanger()
        manager = CredentialManager(
            exchanger, "client-secret", "refresh-0", clock=lambda: now[0]
        )

        await manager.ensure_fresh()
        now[0] += 3599
        await manager.ensure_fresh()
        assert exchanger.calls == 1

        now[0] += 2
        await manager.ensure_fresh()
        assert exchanger.calls == 2
        assert manager.access_token == "access-2"

    def test_invalidate(self) -> None:
        manager = self.make_manager(MagicMock(), access_token="a", expires_at=NOW + 60)
        assert not manager.is_expired
        manager.invalidate()
        assert manager.is_expired

    def test_invalidate_stale_token_keeps_current(self) -> None:
        """Test a rejection of an already replaced token leaves the new one alone."""
        manager = self.make_manager(MagicMock(), access_token="access-2", expires_at=NOW + 60)

        manager.invalidate("access-1")

        assert manager.access_token == "access-2"
        assert not manager.is_expired

    def test_invalidate_current_token(self) -> None:
        manager = self.make_manager(MagicMock(), access_token="access-2", expires_at=NOW + 60)
        manager.invalidate("access-2")
        assert manager.is_expired

    @pytest.mark.asyncio
    async def test_failing_rotation_callback_is_logged(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        exchanger = MagicMock()
        exchanger.exchange_refresh_token = AsyncMock(return_value=token_response(1))
        rotated = MagicMock(side_effect=OSError("refresh-1 could not be saved"))
        manager = self.make_manager(exchanger, on_rotate=rotated)

        await manager.ensure_fresh()

        rotated.assert_called_once_with("refresh-1")
        assert manager.access_token == "access-1"
        assert "rotation callback failed" in caplog.text
        assert "refresh-1" not in caplog.text

"""
Token state for OneDrive authentication.
"""

import time
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class TokenSet:
    """Access token, its rotating refresh token and the absolute expiry."""

    access_token: str = ""
    refresh_token: str = ""
    expires_at: float = 0.0  # Seconds since epoch

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check if the access token is missing or past its expiry."""
        if not self.access_token:
            return True
        if now is None:
            now = time.time()
        return now > self.expires_at

    @classmethod
    def from_response(cls, data: dict[str, Any], now: Optional[float] = None) -> "TokenSet":
        """
        Build from an identity endpoint token response.

        Raises:
            ValueError: If a required field is missing or malformed
        """
        access_token = data.get("access_token")
        refresh_token = data.get("refresh_token")
        expires_in = data.get("expires_in")

        if not isinstance(access_token, str) or not access_token:
            raise ValueError("Token response has no access_token")
        if not isinstance(refresh_token, str) or not refresh_token:
            raise ValueError("Token response has no refresh_token")
        try:
            expires_in_s = int(expires_in)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            raise ValueError(f"Token response has invalid expires_in: {expires_in!r}")

        if now is None:
            now = time.time()
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=now + expires_in_s,
        )

    def __repr__(self) -> str:
        # Never expose token material
        return f"TokenSet(expires_at={self.expires_at:.0f})"

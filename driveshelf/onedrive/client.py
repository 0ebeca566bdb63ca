"""
OneDrive REST client.

Thin aiohttp transport for the Microsoft Graph calls the provider needs:
refresh-token exchange, child listing, item lookup and ranged downloads.
Authorization is passed in per call; token lifecycle lives in
CredentialManager.
"""

import logging
from typing import Any, Optional, Sequence
from urllib.parse import quote

import aiohttp

from driveshelf.exceptions import AuthError, BackendError, NotFound

from .location import DriveLocation

logger = logging.getLogger(__name__)

DOWNLOAD_URL_FIELD = "@microsoft.graph.downloadUrl"
NEXT_LINK_FIELD = "@odata.nextLink"


class OneDriveClient:
    """Microsoft Graph client for a single drive."""

    API_BASE = "https://graph.microsoft.com/v1.0"
    TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
    SCOPE = "offline_access Files.Read.All"

    def __init__(
        self,
        client_id: str,
        location: Optional[DriveLocation] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize client.

        Args:
            client_id: Azure application (client) ID
            location: Drive to read from (signed-in user's drive by default)
            session: Shared session; one is created on first use otherwise
        """
        self.client_id = client_id
        self.location = location or DriveLocation()
        self._session = session
        self._owns_session = session is None

    @property
    def drive_url(self) -> str:
        """Base URL of the drive."""
        return f"{self.API_BASE}{self.location.api_path}"

    async def __aenter__(self) -> "OneDriveClient":
        """Async context manager entry."""
        self._get_session()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            # Downloads may run for a long time; timeouts are up to the caller
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None))
            self._owns_session = True
        return self._session

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def exchange_refresh_token(
        self, refresh_token: str, client_secret: str
    ) -> dict[str, Any]:
        """
        Exchange a refresh token for a new token set.

        Args:
            refresh_token: Current refresh token
            client_secret: Application client secret

        Returns:
            Token response with ``access_token``, ``refresh_token`` and
            ``expires_in`` (seconds)

        Raises:
            AuthError: If the identity endpoint rejects the exchange or is
                unreachable
        """
        data = {
            "client_id": self.client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
            "scope": self.SCOPE,
        }
        try:
            async with self._get_session().post(self.TOKEN_URL, data=data) as resp:
                if resp.status != 200:
                    reason = await self._error_text(resp)
                    raise AuthError(f"Token exchange failed ({resp.status}): {reason}")
                result: dict[str, Any] = await resp.json(content_type=None)
                return result
        except aiohttp.ClientError as e:
            raise AuthError(f"Token exchange request failed: {e}") from e
        except ValueError as e:
            raise AuthError(f"Token exchange returned invalid JSON: {e}") from e

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    async def list_children(self, access_token: str, folder: str = "") -> list[dict[str, Any]]:
        """
        List the immediate children of a folder, following paging links.

        Args:
            access_token: Bearer token
            folder: Folder path relative to the drive root ("" for the root)

        Returns:
            Raw DriveItem dicts
        """
        folder = folder.strip("/")
        if folder:
            url: Optional[str] = f"{self.drive_url}/root:/{quote(folder)}:/children"
        else:
            url = f"{self.drive_url}/root/children"

        items: list[dict[str, Any]] = []
        while url:
            page = await self._get_json(url, access_token)
            value = page.get("value")
            if not isinstance(value, list):
                raise BackendError("Child listing has no 'value' array")
            items.extend(item for item in value if isinstance(item, dict))
            url = page.get(NEXT_LINK_FIELD)

        logger.debug(f"Listed {len(items)} children of '/{folder}'")
        return items

    async def get_item(
        self,
        access_token: str,
        path: str,
        select: Optional[Sequence[str]] = None,
    ) -> dict[str, Any]:
        """
        Fetch an item's metadata by absolute path.

        Args:
            access_token: Bearer token
            path: Absolute item path, e.g. ``/ALBUM/1/1.mp3``
            select: Fields to return (all default fields if omitted)

        Raises:
            NotFound: If the item does not exist
            BackendError: On any other failure
        """
        url = f"{self.drive_url}/root:{quote(path)}"
        params = {"$select": ",".join(select)} if select else None
        return await self._get_json(url, access_token, params=params)

    async def get_download_url(self, access_token: str, path: str) -> str:
        """
        Fetch a temporary, pre-authenticated download URL for an item.

        Raises:
            NotFound: If the item does not exist or has no content
        """
        item = await self.get_item(access_token, path, select=("id", DOWNLOAD_URL_FIELD))
        url = item.get(DOWNLOAD_URL_FIELD)
        if not isinstance(url, str) or not url:
            raise NotFound(f"No download URL for {path}")
        return url

    async def open_download(
        self, url: str, range_header: Optional[str] = None
    ) -> aiohttp.ClientResponse:
        """
        Start a download. The caller owns the returned response and must close it.

        Args:
            url: Download URL from ``get_download_url``
            range_header: ``Range`` header value, if any

        Raises:
            NotFound: If the download URL answers 404
            BackendError: On any other failure
        """
        headers = {"Range": range_header} if range_header else {}
        try:
            resp = await self._get_session().get(url, headers=headers)
        except aiohttp.ClientError as e:
            raise BackendError(f"Download request failed: {e}") from e

        if resp.status in (200, 206):
            return resp

        resp.close()
        if resp.status == 404:
            raise NotFound("Download URL answered 404")
        raise BackendError(f"Download failed: {resp.status}", status=resp.status)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _get_json(
        self,
        url: str,
        access_token: str,
        params: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            async with self._get_session().get(url, headers=headers, params=params) as resp:
                if resp.status == 404:
                    raise NotFound(f"Item not found: {url[len(self.drive_url):]}")
                if resp.status != 200:
                    reason = await self._error_text(resp)
                    raise BackendError(
                        f"API request failed ({resp.status}): {reason}", status=resp.status
                    )
                result = await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise BackendError(f"API request error: {e}") from e
        except ValueError as e:
            raise BackendError(f"API returned invalid JSON: {e}") from e

        if not isinstance(result, dict):
            raise BackendError("API returned a non-object response")
        return result

    @staticmethod
    async def _error_text(resp: aiohttp.ClientResponse) -> str:
        """Best-effort error description from an error response."""
        try:
            body = await resp.json(content_type=None)
        except (aiohttp.ClientError, ValueError):
            return resp.reason or ""
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                return str(error.get("message", ""))
            if "error_description" in body:
                return str(body["error_description"])
            if error:
                return str(error)
        return resp.reason or ""

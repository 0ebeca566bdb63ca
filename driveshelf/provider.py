"""
OneDrive album provider.

Public contract consumed by the host catalog/streaming server: enumerate
albums, describe tracks, and stream track and cover bytes, optionally from
the middle of a file.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from driveshelf.auth import CredentialManager, RotationCallback
from driveshelf.catalog import AlbumCatalog, audio_path, cover_path, item_path
from driveshelf.exceptions import AuthError, BackendError, NotFound
from driveshelf.onedrive import DOWNLOAD_URL_FIELD, DriveLocation, OneDriveClient
from driveshelf.streaming import (
    FULL,
    AudioInfo,
    AudioResource,
    DurationStrategy,
    Range,
    ResourceStream,
    from_header,
    strategy_for,
    to_header,
)
from driveshelf.streaming.duration import FLAC_PROBE_SIZE

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Probe-only fetches ask for just the FLAC head
PROBE_RANGE = Range(start=0, end=FLAC_PROBE_SIZE - 1)


class OneDriveProvider:
    """
    Audio album provider backed by a OneDrive folder.

    Every album lives in a folder named by its 36-character identifier under
    the catalog root, with numbered disc folders holding numbered tracks.
    One duration strategy is chosen per instance: FLAC is probed from the
    stream head, other codecs use the backend's audio metadata.

    Usage:
        async with await OneDriveProvider.create(client, credentials) as provider:
            resource = await provider.get_audio(album_id, 1, 1, Range(start=0))
            async with resource.stream as stream:
                async for chunk in stream:
                    ...
    """

    def __init__(
        self,
        client: OneDriveClient,
        credentials: CredentialManager,
        root: str = "",
        extension: str = "flac",
        strategy: Optional[DurationStrategy] = None,
    ):
        """
        Initialize provider. The catalog is empty until reload().

        Args:
            client: OneDrive REST client
            credentials: Credential manager sharing ``client`` as exchanger
            root: Catalog root folder relative to the drive root
            extension: Codec extension of the track files
            strategy: Duration strategy (picked from ``extension`` if omitted)
        """
        self._client = client
        self._credentials = credentials
        self._extension = extension
        self._strategy = strategy or strategy_for(extension)
        self._catalog = AlbumCatalog(self._list_children, root)

    @classmethod
    async def create(
        cls,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        location: Optional[DriveLocation] = None,
        root: str = "",
        extension: str = "flac",
        strategy: Optional[DurationStrategy] = None,
        on_rotate: Optional[RotationCallback] = None,
    ) -> "OneDriveProvider":
        """
        Build a provider from application credentials and load the catalog.

        Raises:
            AuthError: If the initial token exchange fails
            BackendError: If the catalog root cannot be listed
        """
        client = OneDriveClient(client_id, location)
        credentials = CredentialManager(
            client, client_secret, refresh_token, on_rotate=on_rotate
        )
        provider = cls(client, credentials, root=root, extension=extension, strategy=strategy)
        try:
            await provider.reload()
        except BaseException:
            await client.close()
            raise
        return provider

    @property
    def extension(self) -> str:
        """Codec extension of the track files."""
        return self._extension

    @property
    def strategy(self) -> DurationStrategy:
        """Duration strategy in use."""
        return self._strategy

    @property
    def catalog(self) -> AlbumCatalog:
        """The album catalog."""
        return self._catalog

    async def close(self) -> None:
        """Close the underlying client session."""
        await self._client.close()

    async def __aenter__(self) -> "OneDriveProvider":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        await self.close()

    # =========================================================================
    # Catalog
    # =========================================================================

    def albums(self) -> set[str]:
        """Identifiers of all known albums."""
        return self._catalog.list()

    def has_album(self, album_id: str) -> bool:
        """Check if an album is in the catalog."""
        return album_id in self._catalog

    async def reload(self) -> None:
        """
        Reload the album catalog. Safe while fetches are in flight.

        Raises:
            AuthError: If credentials cannot be refreshed
            BackendError: If the listing fails
        """
        await self._catalog.reload()

    # =========================================================================
    # Audio
    # =========================================================================

    async def get_audio_info(self, album_id: str, disc_id: int, track_id: int) -> AudioInfo:
        """
        Describe a track without streaming it.

        Raises:
            NotFound: Unknown album or missing track
            InvalidPath: Disc/track numbers cannot form a path
            BackendError: Backend failure
            DecodeError: Duration could not be determined
        """
        path = self._track_path(album_id, disc_id, track_id)

        if not self._strategy.needs_stream:
            item = await self._get_item(path, ("size", *self._strategy.item_fields))
            duration = await self._strategy.duration(item, None, FULL)
            return AudioInfo(self._extension, self._item_size(item, path), duration)

        item = await self._get_item(path, ("size", DOWNLOAD_URL_FIELD))
        size = self._item_size(item, path)
        async with await self._open(item, path, PROBE_RANGE) as (effective, stream):
            duration = await self._strategy.duration(item, stream, effective)
        return AudioInfo(self._extension, size, duration)

    async def get_audio(
        self,
        album_id: str,
        disc_id: int,
        track_id: int,
        range_: Range = FULL,
    ) -> AudioResource:
        """
        Stream a track, optionally starting mid-file.

        The caller owns ``resource.stream`` and must close it (or read it to
        the end through async iteration).

        Args:
            album_id: Album identifier
            disc_id: 1-based disc number
            track_id: 1-based track number
            range_: Requested byte window

        Returns:
            Audio info, effective range reported by the backend and the body

        Raises:
            NotFound: Unknown album or missing track
            InvalidPath: Disc/track numbers cannot form a path
            BackendError: Backend failure
            DecodeError: Probed stream carries no usable duration
        """
        path = self._track_path(album_id, disc_id, track_id)
        item = await self._get_item(
            path, ("size", DOWNLOAD_URL_FIELD, *self._strategy.item_fields)
        )
        size = self._item_size(item, path)

        duration: Optional[int] = None
        if not self._strategy.needs_stream:
            duration = await self._strategy.duration(item, None, range_)

        opened = await self._open(item, path, range_)
        effective, stream = opened.effective, opened.stream
        try:
            if self._strategy.needs_stream:
                duration = await self._strategy.duration(item, stream, effective)
        except BaseException:
            await stream.close()
            raise

        return AudioResource(
            info=AudioInfo(self._extension, size, duration),
            range=effective,
            stream=stream,
        )

    async def get_cover(self, album_id: str, disc_id: Optional[int] = None) -> ResourceStream:
        """
        Stream an album cover, or a disc cover when ``disc_id`` is given.

        Raises:
            NotFound: Unknown album or missing cover
            InvalidPath: Disc number cannot form a path
            BackendError: Backend failure
        """
        base = self._catalog.lookup(album_id)
        path = item_path(cover_path(base, album_id, disc_id))
        url = await self._authorized(self._client.get_download_url, path)
        logger.debug(f"Fetching cover {path}")
        response = await self._client.open_download(url)
        return ResourceStream(response, label=path)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _track_path(self, album_id: str, disc_id: int, track_id: int) -> str:
        base = self._catalog.lookup(album_id)
        return item_path(audio_path(base, album_id, disc_id, track_id, self._extension))

    async def _authorized(self, call: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Run a backend call with a fresh access token."""
        await self._credentials.ensure_fresh()
        access_token = self._credentials.access_token
        try:
            return await call(access_token, *args)
        except BackendError as e:
            if e.status == 401:
                self._credentials.invalidate(access_token)
                raise AuthError(f"Backend rejected access token: {e}") from e
            raise

    async def _list_children(self, folder: str) -> list[dict[str, Any]]:
        return await self._authorized(self._client.list_children, folder)

    async def _get_item(self, path: str, select: tuple[str, ...]) -> dict[str, Any]:
        return await self._authorized(self._client.get_item, path, select)

    @staticmethod
    def _item_size(item: dict[str, Any], path: str) -> int:
        size = item.get("size")
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise BackendError(f"Item {path} has no size")
        return size

    async def _open(self, item: dict[str, Any], path: str, range_: Range) -> "_OpenedDownload":
        url = item.get(DOWNLOAD_URL_FIELD)
        if not isinstance(url, str) or not url:
            raise NotFound(f"No download URL for {path}")

        range_header = to_header(range_)
        logger.debug(f"Fetching {path} (range: {range_header or 'full'})")
        response = await self._client.open_download(url, range_header)
        effective = from_header(response.headers.get("Content-Range"))
        return _OpenedDownload(effective, ResourceStream(response, label=path))


class _OpenedDownload:
    """Effective range and stream of a started download."""

    def __init__(self, effective: Range, stream: ResourceStream):
        self.effective = effective
        self.stream = stream

    async def __aenter__(self) -> tuple[Range, ResourceStream]:
        return self.effective, self.stream

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        await self.stream.close()

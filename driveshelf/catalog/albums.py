"""
In-memory album catalog.

Maps album identifiers to the folder that holds each album, rebuilt from a
listing of the catalog root.
"""

import asyncio
import logging
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Optional
from urllib.parse import unquote

from driveshelf.exceptions import NotFound

logger = logging.getLogger(__name__)

ALBUM_ID_LENGTH = 36
ROOT_MARKER = "root:"

# folder ("" for the drive root) -> raw DriveItem dicts
ChildLister = Callable[[str], Awaitable[list[dict[str, Any]]]]


def parent_folder(item: dict[str, Any]) -> Optional[str]:
    """
    Extract an item's parent folder relative to the drive root.

    ``parentReference.path`` looks like ``/drive/root:/music/lossless``;
    everything up to and including ``root:`` is dropped.

    Returns:
        Folder path without leading separator ("" for the root), or None if
        the item carries no usable parent path
    """
    parent = item.get("parentReference")
    if not isinstance(parent, dict):
        return None
    path = parent.get("path")
    if not isinstance(path, str):
        return None

    segments = unquote(path).split("/")
    if ROOT_MARKER not in segments:
        return None
    rest = segments[segments.index(ROOT_MARKER) + 1 :]
    return "/".join(segment for segment in rest if segment)


def albums_from_listing(items: list[dict[str, Any]]) -> dict[str, str]:
    """
    Build the album map from a root listing.

    Only entries named with a canonical 36-character identifier are kept;
    entries missing the name or parent path are skipped.
    """
    albums: dict[str, str] = {}
    for item in items:
        name = item.get("name")
        if not isinstance(name, str) or len(name) != ALBUM_ID_LENGTH:
            continue
        base = parent_folder(item)
        if base is None:
            logger.debug(f"Skipping {name}: no parent path in listing")
            continue
        albums[name] = base
    return albums


class AlbumCatalog:
    """
    Album identifier -> base path, replaced wholesale on reload.

    The map is a read-only snapshot published with a single assignment, so
    readers always see either the old or the new catalog, never a mix.
    Reloads run one at a time, so the newest reload publishes last.
    """

    def __init__(self, list_children: ChildLister, root: str = ""):
        """
        Initialize catalog.

        Args:
            list_children: Coroutine listing the children of a folder
            root: Catalog root folder relative to the drive root
        """
        self._list_children = list_children
        self._root = root.strip("/")
        self._albums: Mapping[str, str] = MappingProxyType({})
        self._reload_lock = asyncio.Lock()

    @property
    def root(self) -> str:
        """Catalog root folder."""
        return self._root

    async def reload(self) -> None:
        """
        Rebuild the catalog from a fresh listing of the root.

        Raises:
            BackendError: If the listing fails; the old catalog stays in place
        """
        async with self._reload_lock:
            items = await self._list_children(self._root)
            albums = albums_from_listing(items)
            self._albums = MappingProxyType(albums)
        logger.info(f"Loaded {len(albums)} albums from '/{self._root}'")

    def lookup(self, album_id: str) -> str:
        """
        Get the base path of an album.

        Raises:
            NotFound: If the album is not in the catalog
        """
        base = self._albums.get(album_id)
        if base is None:
            raise NotFound(f"Unknown album: {album_id}")
        return base

    def list(self) -> set[str]:
        """All known album identifiers."""
        return set(self._albums)

    def __contains__(self, album_id: object) -> bool:
        return album_id in self._albums

    def __len__(self) -> int:
        return len(self._albums)

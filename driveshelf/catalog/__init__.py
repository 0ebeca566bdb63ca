"""Album catalog and remote path resolution."""

from .albums import (
    ALBUM_ID_LENGTH,
    AlbumCatalog,
    ChildLister,
    albums_from_listing,
    parent_folder,
)
from .paths import audio_path, cover_path, item_path

__all__ = [
    # Catalog
    "ALBUM_ID_LENGTH",
    "AlbumCatalog",
    "ChildLister",
    "albums_from_listing",
    "parent_folder",
    # Paths
    "audio_path",
    "cover_path",
    "item_path",
]

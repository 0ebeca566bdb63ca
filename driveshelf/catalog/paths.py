"""
Remote path templates for tracks and covers.

Layout under the catalog root:

    /{album_id}/cover.jpg
    /{album_id}/{disc}/cover.jpg
    /{album_id}/{disc}/{track}.{ext}
"""

from typing import Optional

from driveshelf.exceptions import InvalidPath

COVER_FILENAME = "cover.jpg"


def _check_segment(value: str, what: str) -> None:
    if not value or ":" in value or "/" in value:
        raise InvalidPath(f"Invalid {what}: {value!r}")


def _check_number(value: int, what: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidPath(f"{what} must be a positive integer, got {value!r}")


def _with_base(base: str, path: str) -> str:
    if not base:
        return path
    if ":" in base or any(not part for part in base.split("/")):
        raise InvalidPath(f"Invalid base path: {base!r}")
    return f"/{base}{path}"


def audio_path(base: str, album_id: str, disc_id: int, track_id: int, extension: str) -> str:
    """
    Build the remote path of a track.

    Args:
        base: Album parent folder relative to the drive root ("" for the root)
        album_id: Album identifier
        disc_id: 1-based disc number
        track_id: 1-based track number
        extension: Codec extension, without the dot

    Returns:
        Absolute remote path, e.g. ``/music/ALBUM/1/2.flac``

    Raises:
        InvalidPath: If any component cannot be placed in the template
    """
    _check_segment(album_id, "album id")
    _check_number(disc_id, "Disc number")
    _check_number(track_id, "Track number")
    _check_segment(extension, "extension")
    return _with_base(base, f"/{album_id}/{disc_id}/{track_id}.{extension}")


def cover_path(base: str, album_id: str, disc_id: Optional[int] = None) -> str:
    """
    Build the remote path of an album or disc cover.

    Args:
        base: Album parent folder relative to the drive root ("" for the root)
        album_id: Album identifier
        disc_id: Disc number for a disc cover, None for the album cover

    Returns:
        Absolute remote path

    Raises:
        InvalidPath: If any component cannot be placed in the template
    """
    _check_segment(album_id, "album id")
    if disc_id is None:
        path = f"/{album_id}/{COVER_FILENAME}"
    else:
        _check_number(disc_id, "Disc number")
        path = f"/{album_id}/{disc_id}/{COVER_FILENAME}"
    return _with_base(base, path)


def item_path(path: str) -> str:
    """
    Validate an absolute item path before it is sent to the backend.

    Raises:
        InvalidPath: If the path is not absolute or has empty segments
    """
    if not path.startswith("/") or path == "/":
        raise InvalidPath(f"Not an absolute item path: {path!r}")
    if any(not part for part in path[1:].split("/")):
        raise InvalidPath(f"Empty segment in item path: {path!r}")
    return path

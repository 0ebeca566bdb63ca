"""
Duration acquisition strategies.

A provider picks one strategy at construction:

- StreamProbe reads the FLAC STREAMINFO block from the head of the
  download and hands the bytes back to the stream untouched.
- MetadataQuery reads the duration the backend already extracted into the
  item's ``audio`` facet.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from mutagen import MutagenError
from mutagen.flac import StreamInfo

from driveshelf.exceptions import DecodeError

from .range import Range
from .stream import ResourceStream

logger = logging.getLogger(__name__)

FLAC_MARKER = b"fLaC"
BLOCK_HEADER_SIZE = 4
STREAMINFO_BLOCK_TYPE = 0
STREAMINFO_SIZE = 34

# Marker + first block header + STREAMINFO body
FLAC_PROBE_SIZE = len(FLAC_MARKER) + BLOCK_HEADER_SIZE + STREAMINFO_SIZE


def parse_flac_duration(head: bytes) -> int:
    """
    Extract the duration from the head of a FLAC file.

    Args:
        head: At least FLAC_PROBE_SIZE bytes from offset 0

    Returns:
        Duration in milliseconds

    Raises:
        DecodeError: If the bytes are not a FLAC head with a usable STREAMINFO
    """
    if len(head) < FLAC_PROBE_SIZE:
        raise DecodeError(f"Stream too short for FLAC header ({len(head)} bytes)")
    if head[:4] != FLAC_MARKER:
        raise DecodeError("Missing fLaC marker")

    block_type = head[4] & 0x7F
    block_length = int.from_bytes(head[5:8], "big")
    if block_type != STREAMINFO_BLOCK_TYPE or block_length < STREAMINFO_SIZE:
        raise DecodeError("First metadata block is not STREAMINFO")

    block_start = len(FLAC_MARKER) + BLOCK_HEADER_SIZE
    try:
        info = StreamInfo(head[block_start : block_start + STREAMINFO_SIZE])
    except MutagenError as e:
        raise DecodeError(f"Invalid STREAMINFO block: {e}") from e

    if not info.sample_rate:
        raise DecodeError("STREAMINFO reports a sample rate of 0")
    if not info.total_samples:
        raise DecodeError("STREAMINFO does not report a sample count")

    return info.total_samples * 1000 // info.sample_rate


class DurationStrategy(ABC):
    """How a provider learns the duration of an audio item."""

    name: str = ""

    # Extra item fields to select when looking up a track
    item_fields: tuple[str, ...] = ()

    @abstractmethod
    async def duration(
        self,
        item: dict[str, Any],
        stream: Optional[ResourceStream],
        range_: Range,
    ) -> Optional[int]:
        """
        Determine the duration of an audio item.

        Args:
            item: Backend item metadata (with ``item_fields`` selected)
            stream: Open body stream, or None when only info is wanted
            range_: Effective range of ``stream``

        Returns:
            Duration in milliseconds, or None if it cannot be known for this
            range

        Raises:
            DecodeError: If the duration should be available but is not
        """

    @property
    def needs_stream(self) -> bool:
        """True if the duration comes from the body rather than the item."""
        return False


class StreamProbe(DurationStrategy):
    """Read the duration from the FLAC header at the start of the stream."""

    name = "probe"

    async def duration(
        self,
        item: dict[str, Any],
        stream: Optional[ResourceStream],
        range_: Range,
    ) -> Optional[int]:
        if stream is None:
            raise DecodeError("Stream probe needs an open stream")
        # STREAMINFO lives in the first FLAC_PROBE_SIZE bytes of the file
        if range_.start != 0:
            return None
        if range_.end is not None and range_.end < FLAC_PROBE_SIZE - 1:
            return None

        head = await stream.readexactly(FLAC_PROBE_SIZE)
        stream.unread(head)
        duration = parse_flac_duration(head)
        logger.debug(f"Probed duration: {duration}ms")
        return duration

    @property
    def needs_stream(self) -> bool:
        return True


class MetadataQuery(DurationStrategy):
    """Use the duration from the backend's audio facet."""

    name = "metadata"
    item_fields = ("audio",)

    async def duration(
        self,
        item: dict[str, Any],
        stream: Optional[ResourceStream],
        range_: Range,
    ) -> Optional[int]:
        audio = item.get("audio")
        if not isinstance(audio, dict):
            raise DecodeError("Item has no audio metadata")
        duration = audio.get("duration")
        if isinstance(duration, bool) or not isinstance(duration, int) or duration < 0:
            raise DecodeError(f"Item audio metadata has no usable duration: {duration!r}")
        return duration


STRATEGIES: dict[str, type[DurationStrategy]] = {
    StreamProbe.name: StreamProbe,
    MetadataQuery.name: MetadataQuery,
}


def strategy_for(extension: str, name: str = "auto") -> DurationStrategy:
    """
    Pick the duration strategy for a provider.

    Args:
        extension: Codec extension of the tracks
        name: "probe", "metadata" or "auto" (FLAC is probed, the rest queried)

    Returns:
        Strategy instance

    Raises:
        ValueError: If ``name`` is unknown
    """
    if name == "auto":
        name = StreamProbe.name if extension.lower() == "flac" else MetadataQuery.name
    strategy_class = STRATEGIES.get(name)
    if strategy_class is None:
        raise ValueError(f"Unknown duration strategy: {name}")
    return strategy_class()

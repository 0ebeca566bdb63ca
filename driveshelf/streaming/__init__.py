"""Byte-range negotiation, resource streams and duration strategies."""

from .duration import (
    DurationStrategy,
    MetadataQuery,
    StreamProbe,
    parse_flac_duration,
    strategy_for,
)
from .range import FULL, Range, from_header, to_header
from .stream import ResourceStream
from .types import AudioInfo, AudioResource

__all__ = [
    # Range
    "FULL",
    "Range",
    "from_header",
    "to_header",
    # Streams
    "ResourceStream",
    "AudioInfo",
    "AudioResource",
    # Duration
    "DurationStrategy",
    "MetadataQuery",
    "StreamProbe",
    "parse_flac_duration",
    "strategy_for",
]

"""
Audio resource types returned to the host.
"""

from dataclasses import dataclass
from typing import Any, Optional

from .range import Range
from .stream import ResourceStream


@dataclass
class AudioInfo:
    """
    Basic description of an audio file.

    Computed per fetch, never cached.
    """

    extension: str
    size: int
    duration: Optional[int] = None  # Milliseconds, None if unavailable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "extension": self.extension,
            "size": self.size,
            "duration": self.duration,
        }


@dataclass
class AudioResource:
    """Audio info, the effective byte range and the body stream of one fetch."""

    info: AudioInfo
    range: Range
    stream: ResourceStream

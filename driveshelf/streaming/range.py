"""
Byte-range negotiation.

Translates a logical Range into an outbound ``Range`` request header and
parses the backend's ``Content-Range`` confirmation back into a Range.
The confirmation header is advisory: anything malformed degrades to a
less specific Range instead of failing the request.
"""

from dataclasses import dataclass
from typing import ClassVar, Optional

# "bytes " prefix of a Content-Range value
CONTENT_RANGE_PREFIX_LEN = 6


def _parse_int(value: str) -> Optional[int]:
    # Plain decimal digits only; int() would also take "+5", " 5" and "1_0"
    if not (value.isascii() and value.isdigit()):
        return None
    return int(value)


@dataclass(frozen=True)
class Range:
    """
    Byte window of a resource.

    ``start`` is an inclusive offset, ``end`` an optional inclusive offset and
    ``total`` the optional size of the whole resource.
    """

    start: int = 0
    end: Optional[int] = None
    total: Optional[int] = None

    FULL: ClassVar["Range"]

    @property
    def is_full(self) -> bool:
        """True if this range denotes the entire, unconstrained resource."""
        return self.start == 0 and self.end is None and self.total is None

    @property
    def length(self) -> Optional[int]:
        """Number of bytes covered, when the end is known."""
        if self.end is None:
            return None
        return self.end - self.start + 1

    def to_header(self) -> Optional[str]:
        """Build the outbound ``Range`` header value (None for a full fetch)."""
        return to_header(self)

    @classmethod
    def from_request_header(cls, header: Optional[str]) -> "Range":
        """
        Parse an inbound ``Range: bytes=start-[end]`` request header.

        Suffix ranges, multiple ranges and inverted bounds are not supported
        and yield FULL.
        """
        if not header or not header.startswith("bytes="):
            return FULL
        ranges = header[len("bytes="):].strip()
        if "," in ranges:
            return FULL
        start_text, _, end_text = ranges.partition("-")
        start = _parse_int(start_text.strip())
        if start is None:
            return FULL
        end = _parse_int(end_text.strip()) if end_text.strip() else None
        if end is not None and end < start:
            return FULL
        return cls(start=start, end=end)


FULL = Range()
Range.FULL = FULL


def to_header(range_: Range) -> Optional[str]:
    """
    Build the outbound ``Range`` header value.

    Args:
        range_: Requested window

    Returns:
        ``bytes=start-[end]`` or None when the whole resource is requested
    """
    if range_.is_full:
        return None
    if range_.end is None:
        return f"bytes={range_.start}-"
    return f"bytes={range_.start}-{range_.end}"


def from_header(content_range: Optional[str]) -> Range:
    """
    Parse a ``Content-Range: bytes start-end/total`` confirmation.

    Each numeric field that does not parse falls back on its own: start to 0,
    end and total to absent. Never raises.

    Args:
        content_range: Header value, or None if the backend sent none

    Returns:
        Effective Range of the response body
    """
    if content_range is None:
        return FULL
    if len(content_range) <= CONTENT_RANGE_PREFIX_LEN:
        return FULL

    # Content-Range: bytes 0-1023/10240
    #                      ^ offset 6
    body = content_range[CONTENT_RANGE_PREFIX_LEN:]
    start_text, _, rest = body.partition("-")
    end_text, _, total_text = rest.partition("/")

    start = _parse_int(start_text)
    return Range(
        start=start if start is not None else 0,
        end=_parse_int(end_text),
        total=_parse_int(total_text),
    )

"""
Forward-only byte stream over a backend download response.

Wraps an aiohttp response body so callers can read it incrementally and
release the connection deterministically, including on cancellation.
"""

import logging
from typing import Any, AsyncIterator, Optional

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 64 * 1024  # 64KB chunks


class ResourceStream:
    """
    Pass-through reader for a streamed resource.

    Bytes taken from the front of the body (for example by a duration probe)
    can be handed back with ``unread``; they are replayed before the rest of
    the body so the consumer sees the resource unchanged.

    Usage:
        async with resource.stream as stream:
            async for chunk in stream:
                await sink.write(chunk)
    """

    def __init__(self, response: Any, label: str = ""):
        """
        Initialize stream.

        Args:
            response: aiohttp.ClientResponse whose body has not been consumed
            label: Remote path, for log messages
        """
        self._response = response
        self._head = b""
        self._label = label
        self._closed = False
        self._bytes_read = 0

    @property
    def closed(self) -> bool:
        """True once the underlying connection has been released."""
        return self._closed

    @property
    def bytes_read(self) -> int:
        """Bytes handed to the consumer so far."""
        return self._bytes_read

    async def read(self, n: int = -1) -> bytes:
        """
        Read up to ``n`` bytes (all remaining bytes if ``n`` < 0).

        Returns b"" at end of stream.
        """
        if self._closed:
            return b""

        if self._head:
            if n < 0:
                data = self._head + await self._response.content.read()
                self._head = b""
            else:
                data = self._head[:n]
                self._head = self._head[n:]
        else:
            data = await self._response.content.read(n)

        self._bytes_read += len(data)
        return data

    async def readexactly(self, n: int) -> bytes:
        """
        Read ``n`` bytes, or fewer only if the stream ends first.
        """
        parts = []
        remaining = n
        while remaining > 0:
            chunk = await self.read(remaining)
            if not chunk:
                break
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)

    def unread(self, data: bytes) -> None:
        """Push ``data`` back to the front of the stream."""
        if self._closed or not data:
            return
        self._head = data + self._head
        self._bytes_read -= len(data)

    async def iter_chunked(self, size: int = STREAM_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield chunks of at most ``size`` bytes until the stream ends."""
        try:
            while True:
                chunk = await self.read(size)
                if not chunk:
                    break
                yield chunk
        finally:
            await self.close()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_chunked()

    async def close(self) -> None:
        """Release the underlying connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._head = b""
        self._response.close()
        logger.debug(f"Closed stream {self._label} after {self._bytes_read} bytes")

    async def __aenter__(self) -> "ResourceStream":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        await self.close()

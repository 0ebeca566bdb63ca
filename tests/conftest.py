"""Shared fakes for provider tests."""

import asyncio
import io
from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest

ALBUM_ID = "1178e13b-f661-49db-98db-28a04c5583b7"
OTHER_ALBUM_ID = "3a5c5d7e-0000-4bed-b744-17046045ec7d"
DOWNLOAD_URL_FIELD = "@microsoft.graph.downloadUrl"


class FakeContent:
    """Stands in for aiohttp's StreamReader."""

    def __init__(self, data: bytes):
        self._buf = io.BytesIO(data)

    async def read(self, n: int = -1) -> bytes:
        await asyncio.sleep(0)
        return self._buf.read(n)


class FakeResponse:
    """Stands in for an aiohttp.ClientResponse of a download."""

    def __init__(
        self,
        data: bytes = b"",
        status: int = 200,
        headers: Optional[dict[str, str]] = None,
    ):
        self.status = status
        self.headers = headers or {}
        self.content = FakeContent(data)
        self.closed = False

    def close(self) -> None:
        self.closed = True


def build_flac(
    sample_rate: int = 44100,
    total_samples: int = 441000,
    body: bytes = b"\xff\xf8" + bytes(range(256)) * 4,
) -> bytes:
    """FLAC marker, a STREAMINFO block and an arbitrary body."""
    packed = (sample_rate << 44) | (1 << 41) | (15 << 36) | total_samples
    streaminfo = (
        (4096).to_bytes(2, "big")
        + (4096).to_bytes(2, "big")
        + (0).to_bytes(3, "big")
        + (0).to_bytes(3, "big")
        + packed.to_bytes(8, "big")
        + bytes(16)
    )
    header = bytes([0x80]) + len(streaminfo).to_bytes(3, "big")
    return b"fLaC" + header + streaminfo + body


def listing_entry(name: str, parent_path: Optional[str] = "/drive/root:") -> dict[str, Any]:
    """A DriveItem as returned by a child listing."""
    item: dict[str, Any] = {"name": name, "size": 1024, "folder": {"childCount": 2}}
    if parent_path is not None:
        item["parentReference"] = {"driveType": "personal", "path": parent_path}
    return item


class FakeOneDriveClient:
    """
    In-memory OneDrive client.

    ``files`` maps absolute item paths to their bytes; ``audio`` maps paths
    to the ``audio`` facet the backend would report.
    """

    def __init__(
        self,
        listing: Optional[list[dict[str, Any]]] = None,
        files: Optional[dict[str, bytes]] = None,
        audio: Optional[dict[str, dict[str, Any]]] = None,
    ):
        self.listing = listing if listing is not None else [listing_entry(ALBUM_ID)]
        self.files = files or {}
        self.audio = audio or {}
        self.responses: list[FakeResponse] = []
        self.range_headers: list[Optional[str]] = []
        self.tokens_seen: list[str] = []
        self.item_gate: Optional[asyncio.Event] = None
        self.exchange_count = 0

        self.exchange_refresh_token = AsyncMock(side_effect=self._exchange)
        self.list_children = AsyncMock(side_effect=self._list_children)
        self.get_item = AsyncMock(side_effect=self._get_item)
        self.get_download_url = AsyncMock(side_effect=self._get_download_url)
        self.open_download = AsyncMock(side_effect=self._open_download)
        self.close = AsyncMock()

    async def _exchange(self, refresh_token: str, client_secret: str) -> dict[str, Any]:
        await asyncio.sleep(0.01)
        self.exchange_count += 1
        return {
            "access_token": f"access-{self.exchange_count}",
            "refresh_token": f"refresh-{self.exchange_count}",
            "expires_in": 3600,
        }

    async def _list_children(self, access_token: str, folder: str = "") -> list[dict[str, Any]]:
        self.tokens_seen.append(access_token)
        return list(self.listing)

    async def _get_item(
        self, access_token: str, path: str, select: Any = None
    ) -> dict[str, Any]:
        from driveshelf.exceptions import NotFound

        self.tokens_seen.append(access_token)
        if self.item_gate is not None:
            await self.item_gate.wait()
        if path not in self.files:
            raise NotFound(f"Item not found: {path}")
        item: dict[str, Any] = {
            "id": path,
            "size": len(self.files[path]),
            DOWNLOAD_URL_FIELD: f"https://download.example/{path}",
        }
        if path in self.audio:
            item["audio"] = self.audio[path]
        return item

    async def _get_download_url(self, access_token: str, path: str) -> str:
        item = await self._get_item(access_token, path)
        return item[DOWNLOAD_URL_FIELD]

    async def _open_download(self, url: str, range_header: Optional[str] = None) -> FakeResponse:
        self.range_headers.append(range_header)
        path = url[len("https://download.example/") :]
        data = self.files[path]
        if range_header is None:
            response = FakeResponse(data)
        else:
            start_text, _, end_text = range_header[len("bytes=") :].partition("-")
            start = int(start_text)
            end = int(end_text) if end_text else len(data) - 1
            end = min(end, len(data) - 1)
            response = FakeResponse(
                data[start : end + 1],
                status=206,
                headers={"Content-Range": f"bytes {start}-{end}/{len(data)}"},
            )
        self.responses.append(response)
        return response


@pytest.fixture
def flac_data() -> bytes:
    """A 10 second FLAC file."""
    return build_flac()


@pytest.fixture
def fake_client(flac_data: bytes) -> FakeOneDriveClient:
    """Client serving one album with one FLAC track and covers."""
    return FakeOneDriveClient(
        files={
            f"/{ALBUM_ID}/1/1.flac": flac_data,
            f"/{ALBUM_ID}/cover.jpg": b"\xff\xd8album-cover",
            f"/{ALBUM_ID}/1/cover.jpg": b"\xff\xd8disc-cover",
        }
    )


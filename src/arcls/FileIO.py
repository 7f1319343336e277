"""Container sources: local files and HTTP-backed streams.

`open_source` hands format readers a seekable binary stream for either a
local path or an `http(s)://` URL. Remote containers are read with
`RemoteStream`, an io.RawIOBase-compatible stream that fetches byte ranges
on demand, so readers can walk an archive's headers without the caller
downloading it first.

Classes:
    RemoteStream: Lazily-fetching HTTP-backed read-only stream.
"""

import io
import logging
import time
from typing import BinaryIO
from urllib.parse import urlsplit

import httpx

logger = logging.getLogger(__name__)

MIN_FETCH_SIZE = 1 * 1024 * 1024  # 1 MiB
LARGE_REQUEST_THRESHOLD = 512 * 1024  # 512 KiB
DEFAULT_FETCH_SIZE = 8 * 1024 * 1024  # 8 MiB
MAX_ATTEMPTS = 5


def is_remote(location: str) -> bool:
    """Whether `location` is an HTTP(S) URL rather than a filesystem path."""
    return urlsplit(location).scheme.lower() in ("http", "https")


def open_source(location: str) -> BinaryIO:
    """Open a container for binary reading.

    Args:
        location (str): Filesystem path or HTTP(S) URL.

    Returns:
        BinaryIO: A seekable stream; callers own it and must close it.

    Raises:
        OSError: If a local file cannot be opened.
        ConnectionError / httpx.HTTPError: If a remote probe fails.
    """
    if is_remote(location):
        logger.debug("Opening remote container %s", location)
        return RemoteStream(location)
    return open(location, "rb")


class RemoteStream(io.RawIOBase):
    """File-like stream backed by an HTTP resource using Range requests.

    Only one contiguous region is kept in memory. Tar headers are read
    front to back, so a single forward-moving buffer is enough to avoid
    one request per 512-byte block.

    Attributes:
        url (str): Remote resource URL.
        buffer_size (int): Preferred size (bytes) for range fetches.
        pos (int): Current logical read position in the virtual file.
        client (httpx.Client): HTTP client used for requests (keep-alive).
    """
    def __init__(self, url: str, buffer_size: int = DEFAULT_FETCH_SIZE, client: httpx.Client | None = None):
        """Create a RemoteStream.

        Args:
            url (str): HTTP(S) URL of the resource to stream.
            buffer_size (int): Preferred fetch size in bytes.
            client (httpx.Client | None): Client to use instead of a new one;
                the stream closes it either way.

        Raises:
            ConnectionError: If the initial probe returns an unexpected status code.
            httpx.HTTPError: For network issues during the probe.

        Notes:
            The constructor uses a small ranged GET probe (bytes=0-0) to
            discover content length, so SEEK_END works without an extra
            request later on.
        """
        super().__init__()
        self.url = url
        self.buffer_size = buffer_size
        self.pos: int = 0
        self._size: int | None = None

        self._buffer: bytes = b""
        self._buffer_start: int = 0

        if client is None:
            headers = {"Accept": "*/*", "Connection": "keep-alive"}
            client = httpx.Client(headers=headers, follow_redirects=True,
                                  timeout=httpx.Timeout(10.0, read=300.0))
        self.client = client

        try:
            with self.client.stream("GET", self.url, headers={"Range": "bytes=0-0"}) as r:
                if r.status_code not in (200, 206):
                    raise ConnectionError(f"Server returned {r.status_code} for {self.url}")
                content_range = r.headers.get("Content-Range")
                if content_range:
                    # Content-Range: bytes 0-0/12345 -> final part is total size
                    self._size = int(content_range.split("/")[-1])
                else:
                    self._size = int(r.headers.get("Content-Length", 0))
        except BaseException:
            self.client.close()
            raise
        logger.debug("Remote container %s is %d bytes", self.url, self.size)

    @property
    def size(self) -> int:
        """Content length in bytes, or 0 if the server did not report one."""
        return self._size or 0

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    def tell(self) -> int:
        return self.pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move the logical stream position; no request is made until `read`."""
        if whence == io.SEEK_SET:
            self.pos = offset
        elif whence == io.SEEK_CUR:
            self.pos += offset
        elif whence == io.SEEK_END:
            self.pos = self.size + offset
        else:
            raise ValueError(f"invalid whence ({whence})")
        return self.pos

    def _fetch(self, size: int):
        """Fetch a region starting at the current position into the buffer.

        Args:
            size (int): Minimum number of bytes the caller needs.

        Raises:
            httpx.HTTPError: If all attempts fail.
            EOFError: If the server returns empty content for a non-zero range.
        """
        fetch_size = max(size, MIN_FETCH_SIZE) if size <= LARGE_REQUEST_THRESHOLD else max(size, self.buffer_size)
        fetch_size = min(fetch_size, self.size - self.pos)

        # end_range is inclusive per HTTP Range header
        end_range = self.pos + fetch_size - 1
        headers = {"Range": f"bytes={self.pos}-{end_range}"}

        for attempt in range(MAX_ATTEMPTS):
            try:
                response = self.client.get(self.url, headers=headers)
                if response.status_code == 429:
                    wait_time = max(int(response.headers.get("Retry-After", 3)), 1)
                    logger.warning("Received 429 Too Many Requests, retrying after %d seconds", wait_time)
                    time.sleep(wait_time)
                    continue
                response.raise_for_status()

                if not response.content and fetch_size > 0:
                    raise EOFError("Server returned empty content for non-zero range request.")

                self._buffer = response.content
                # A plain 200 means the server ignored Range and sent everything
                self._buffer_start = self.pos if response.status_code == 206 else 0
                return
            except httpx.HTTPError as e:
                if attempt == MAX_ATTEMPTS - 1:
                    raise
                wait_time = (attempt + 1) * 2
                logger.warning("HTTP error on attempt %d: %s. Retrying after %d seconds", attempt + 1, e, wait_time)
                time.sleep(wait_time)
        raise ConnectionError(f"Gave up fetching {self.url} after {MAX_ATTEMPTS} attempts")

    def read(self, size: int = -1) -> bytes:
        """Read up to `size` bytes from the stream (to EOF if -1)."""
        if (size is None) or (size < 0) or (self.pos + size > self.size):
            size = self.size - self.pos
        if size <= 0:
            return b""

        buf_end = self._buffer_start + len(self._buffer)
        if not (self._buffer_start <= self.pos and self.pos + size <= buf_end):
            self._fetch(size)

        offset = self.pos - self._buffer_start
        if offset < 0:
            return b""
        data = self._buffer[offset: offset + size]
        self.pos += len(data)
        return data

    def readinto(self, b) -> int:
        data = self.read(len(b))
        b[:len(data)] = data
        return len(data)

    def close(self):
        """Close the underlying HTTP client and the stream."""
        if not self.closed:
            self.client.close()
        super().close()

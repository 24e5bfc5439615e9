"""Content-Length framed message transport"""

import asyncio
import sys

HEADER_ENCODING = "ascii"


class FramingError(Exception):
    """The byte stream no longer lines up with frame boundaries"""


class TransportWriteError(Exception):
    """An outbound frame could not be delivered"""


class MessageReader:
    """Reads frame payloads from a stream.

    Every frame is a block of ``Name: Value`` header lines, an empty line,
    then exactly ``Content-Length`` bytes of payload.
    """

    def __init__(self, reader: asyncio.StreamReader):
        self._reader = reader

    async def read_message(self) -> bytes | None:
        """Read one payload, or None when the stream ended between frames."""
        headers = await self._read_headers()
        if headers is None:
            return None

        content_length = self._parse_content_length(headers)
        try:
            return await self._reader.readexactly(content_length)
        except asyncio.IncompleteReadError as e:
            raise FramingError(
                f"Stream ended after {len(e.partial)} of {content_length} payload bytes"
            ) from e

    async def _read_headers(self) -> dict[str, str] | None:
        headers: dict[str, str] = {}
        started = False
        while True:
            try:
                line = await self._reader.readline()
            except (asyncio.LimitOverrunError, ValueError) as e:
                raise FramingError(f"Header line too long: {e}") from e

            if not line:
                if started:
                    raise FramingError("Stream ended inside a header block")
                return None
            if not line.endswith(b"\n"):
                raise FramingError("Stream ended inside a header line")

            started = True
            text = line.rstrip(b"\r\n")
            if not text:
                return headers

            try:
                name, value = text.decode(HEADER_ENCODING).split(":", 1)
            except (UnicodeDecodeError, ValueError) as e:
                raise FramingError(f"Malformed header line: {text!r}") from e
            headers[name.strip().lower()] = value.strip()

    def _parse_content_length(self, headers: dict[str, str]) -> int:
        """Parse Content-Length from header."""
        if "content-length" not in headers:
            raise FramingError("Missing Content-Length header")
        value = headers["content-length"]
        if not value.isdigit():
            raise FramingError(f"Invalid Content-Length: {value!r}")
        return int(value)


class MessageWriter:
    """Writes frames to a stream, one frame at a time."""

    def __init__(self, writer: asyncio.StreamWriter):
        self._writer = writer
        self._lock = asyncio.Lock()

    async def write_message(self, payload: bytes) -> None:
        header = f"Content-Length: {len(payload)}\r\n\r\n".encode(HEADER_ENCODING)
        async with self._lock:
            try:
                self._writer.write(header + payload)
                await self._writer.drain()
            except (ConnectionError, OSError, RuntimeError) as e:
                raise TransportWriteError(f"Failed to send message: {e}") from e


async def open_stdio() -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Wrap the process's stdin/stdout as asyncio streams."""
    loop = asyncio.get_running_loop()

    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(
        lambda: asyncio.StreamReaderProtocol(reader), sys.stdin.buffer
    )

    transport, protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin, sys.stdout.buffer
    )
    writer = asyncio.StreamWriter(transport, protocol, reader, loop)
    return reader, writer

"""Split the event stream body into records.

The server terminates each record with a bare carriage return, not a newline,
so the usual line iterators do not apply.
"""

import logging
from typing import AsyncIterable, AsyncIterator

logger = logging.getLogger(__name__)

RECORD_TERMINATOR = b"\r"


def _decode(raw: bytes) -> str:
    # A stray \n shows up when a proxy rewrites the stream as \r\n.
    return raw.decode("utf-8", errors="replace").strip("\n")


async def iter_records(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """
    Yield one string per \\r-terminated record from an async byte stream.

    Chunks may break anywhere, including in the middle of a record or of a
    multi-byte character. A final record without a terminator is yielded once
    the stream ends. Empty records are skipped.

    Args:
        chunks: Async iterable of raw bytes, e.g. httpx.Response.aiter_bytes()

    Yields:
        Decoded records without their terminator
    """
    buffer = bytearray()
    async for chunk in chunks:
        if not chunk:
            continue
        buffer.extend(chunk)
        while True:
            index = buffer.find(RECORD_TERMINATOR)
            if index < 0:
                break
            record = _decode(bytes(buffer[:index]))
            del buffer[: index + 1]
            if record:
                yield record

    if buffer:
        record = _decode(bytes(buffer))
        logger.debug(f"Stream ended with an unterminated record: {record!r}")
        if record:
            yield record

"""Incremental decoding of newline-delimited JSON response streams."""

from typing import Any, AsyncIterable, AsyncIterator, Union
import codecs
import json
import logging

import aiohttp


logger = logging.getLogger(__name__)

_SKIP = object()


def _decode_record(line: str) -> Any:
    try:
        return json.loads(line)
    except json.JSONDecodeError as e:
        logger.warning(f"Skipping malformed stream record ({e}): {line[:100]!r}")
        return _SKIP


async def iter_json_lines(chunks: AsyncIterable[Union[bytes, str]]) -> AsyncIterator[Any]:
    """Yield one decoded JSON value per newline-terminated line.

    Lines may be split across chunks arbitrarily. Blank lines are ignored and
    a line that is not valid JSON is logged and skipped. Whatever remains after
    the last newline is decoded once the chunks run out.

    Args:
        chunks: Raw text or UTF-8 bytes as they arrive from the network

    Yields:
        Decoded records, in the order their lines appeared
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""

    async for chunk in chunks:
        if isinstance(chunk, (bytes, bytearray)):
            buffer += decoder.decode(chunk)
        else:
            buffer += chunk

        *lines, buffer = buffer.split("\n")
        for line in lines:
            line = line.strip()
            if not line:
                continue
            record = _decode_record(line)
            if record is not _SKIP:
                yield record

    buffer += decoder.decode(b"", final=True)
    tail = buffer.strip()
    if tail:
        record = _decode_record(tail)
        if record is not _SKIP:
            yield record


async def iter_response_records(response: aiohttp.ClientResponse) -> AsyncIterator[Any]:
    """Decode a streamed API response, releasing it when done.

    A connection dropped mid-stream (including by ``Transport.cancel``) ends
    the sequence. The response is released when iteration finishes or a started
    iterator is ``aclose()``d. An iterator that is never started keeps its
    connection until ``Transport.cancel`` or ``Transport.close``.
    """
    try:
        async for record in iter_json_lines(response.content.iter_any()):
            yield record
    except aiohttp.ClientError as e:
        logger.warning(f"Response stream ended early: {e}")
    finally:
        response.release()

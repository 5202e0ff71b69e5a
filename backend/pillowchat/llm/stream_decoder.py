"""
Server-Sent Events decoder for streamed chat completions.

Frames are newline-delimited lines of the form ``data: {json}``; the stream
ends with ``data: [DONE]`` or simply by closing.
"""

import codecs
import json
import logging
from typing import AsyncIterable, Callable, Optional, Union

from ..core.errors import DecodeSkip

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def parse_frame(payload: str) -> Optional[str]:
    """
    Extract ``choices[0].delta.content`` from a frame payload.

    Returns:
        The text delta, or None if the frame carries no content

    Raises:
        DecodeSkip: if the payload is not valid JSON
    """
    try:
        chunk = json.loads(payload)
    except json.JSONDecodeError as e:
        raise DecodeSkip(f"Malformed stream frame: {e}") from e

    if not isinstance(chunk, dict):
        return None
    choices = chunk.get("choices")
    if not choices or not isinstance(choices, list) or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta") or {}
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


class StreamDecoder:
    """
    Incremental decoder for one streamed response.

    Feed raw chunks as they arrive; complete lines are decoded immediately and
    the unterminated tail is kept until the next chunk.
    """

    def __init__(self, on_delta: Callable[[str], None],
                 on_done: Optional[Callable[[], None]] = None):
        self.on_delta = on_delta
        self.on_done = on_done
        self.done = False
        self._buffer = ""
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: Union[bytes, str]) -> bool:
        """
        Decode one chunk.

        Returns:
            True once the stream is finished and no more input should be fed
        """
        if self.done:
            return True
        if not chunk:
            return False

        if isinstance(chunk, bytes):
            chunk = self._text_decoder.decode(chunk)
        self._buffer += chunk

        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        for line in lines:
            self._handle_line(line)
            if self.done:
                break
        return self.done

    def finish(self) -> None:
        """Signal end of input; completes the stream if [DONE] was never seen."""
        self._complete()

    def _handle_line(self, line: str) -> None:
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return

        data_str = line[len(DATA_PREFIX):].strip()
        if data_str == DONE_SENTINEL:
            self._complete()
            return

        try:
            content = parse_frame(data_str)
        except DecodeSkip as e:
            logger.debug(f"Skipping stream frame: {e}")
            return

        if content:
            self.on_delta(content)

    def _complete(self) -> None:
        if self.done:
            return
        self.done = True
        if self.on_done is not None:
            self.on_done()


async def decode_stream(
    chunks: AsyncIterable[Union[bytes, str]],
    on_delta: Callable[[str], None],
    on_done: Optional[Callable[[], None]] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> None:
    """
    Drive a StreamDecoder over an async chunk source.

    Completion is signaled exactly once: on [DONE], on end of input, or when
    ``should_stop`` returns True between chunks.
    """
    decoder = StreamDecoder(on_delta, on_done)
    async for chunk in chunks:
        if should_stop is not None and should_stop():
            logger.debug("Stream consumption stopped by caller")
            break
        if decoder.feed(chunk):
            break
    decoder.finish()

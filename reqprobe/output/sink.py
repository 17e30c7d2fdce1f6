"""
Serialized output destination shared by all units of work.
"""

import asyncio
import logging
import sys
from typing import Optional, TextIO


class OutputSink:
    """
    Console or file writer guarded by a lock so each record lands whole.

    The CSV header flag has its own lock, held only while the header is
    checked and written.
    """

    def __init__(self, path: Optional[str] = None, stream: Optional[TextIO] = None):
        self.path = path
        self.logger = logging.getLogger(__name__)
        self._owns_stream = path is not None
        if path is not None:
            self._stream = open(path, 'w', encoding='utf-8')
        else:
            self._stream = stream if stream is not None else sys.stdout
        self._write_lock = asyncio.Lock()
        self._header_lock = asyncio.Lock()
        self.header_written = False

    @property
    def is_console(self) -> bool:
        return self.path is None

    def is_terminal(self) -> bool:
        """True when results go to an interactive terminal."""
        isatty = getattr(self._stream, 'isatty', None)
        return self.is_console and isatty is not None and isatty()

    async def write(self, text: str):
        """Append one complete record."""
        async with self._write_lock:
            try:
                self._stream.write(text)
            except OSError as e:
                self.logger.error(f"Error writing to output: {e}")

    async def write_header_once(self, header: Optional[str]) -> bool:
        """Write ``header`` unless one was already written; returns True if written now."""
        if not header:
            return False

        async with self._header_lock:
            if self.header_written:
                return False
            await self.write(header)
            self.header_written = True
            return True

    async def flush(self):
        async with self._write_lock:
            try:
                self._stream.flush()
            except OSError as e:
                self.logger.error(f"Error flushing output: {e}")

    async def close(self):
        """Flush, and close the file if this sink opened it."""
        await self.flush()
        if self._owns_stream and not self._stream.closed:
            self._stream.close()

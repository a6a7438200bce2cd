"""Background draining of one pipe read end.

A StreamReader owns its descriptor: it reads until end-of-stream or an I/O
error, hands each chunk to the sink before reading the next one, and closes
the descriptor when done. Broken pipes and EIO are treated as end-of-stream.
"""

from __future__ import annotations

import errno
import io
import logging
import threading
from collections.abc import Callable, Iterator

__all__ = ["StreamReader", "BUFSIZE"]

logger = logging.getLogger(__name__)

# Read size for best-effort chunking
BUFSIZE = 16 * 1024

# errno values that end the stream silently
_TERMINAL_ERRNOS = frozenset({errno.EPIPE, errno.EIO})


class StreamReader:
    """Drain ``fd`` on a daemon thread, delivering chunks to ``sink``.

    Args:
        fd: Read end to drain (ownership is transferred)
        sink: Called with each chunk, in order
        bufsize: None = best-effort chunks, 0 = lines, N > 0 = N-byte chunks
        name: Thread name suffix, for diagnostics
    """

    def __init__(
        self,
        fd: int,
        sink: Callable[[bytes], None],
        *,
        bufsize: int | None = None,
        name: str = "stream",
    ) -> None:
        self._stream = io.open(fd, "rb", closefd=True)
        self._sink = sink
        self._bufsize = bufsize
        self._error: Exception | None = None
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"shellrun-reader-{name}-fd{fd}",
        )
        self._thread.start()

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def chunks(self) -> Iterator[bytes]:
        """Yield chunks according to the buffering policy until end-of-stream."""
        stream = self._stream
        while True:
            try:
                if self._bufsize is None:
                    chunk = stream.read1(BUFSIZE)
                elif self._bufsize == 0:
                    chunk = stream.readline()
                else:
                    chunk = stream.read(self._bufsize)
            except OSError as e:
                if e.errno in _TERMINAL_ERRNOS:
                    logger.debug(f"Reader {self._thread.name} stopped: {e}")
                    return
                raise
            if not chunk:
                return
            yield chunk

    def _run(self) -> None:
        try:
            for chunk in self.chunks():
                self._sink(chunk)
        except Exception as e:
            self._error = e
            logger.debug(f"Reader {self._thread.name} failed: {e!r}")
        finally:
            self._stream.close()
            logger.debug(f"Reader {self._thread.name} finished")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the reader has delivered everything.

        Args:
            timeout: Optional upper bound in seconds

        Returns:
            True if the reader terminated

        Raises:
            Exception: Whatever the sink raised while draining
        """
        self._thread.join(timeout)
        if self._thread.is_alive():
            return False
        if self._error is not None:
            error, self._error = self._error, None
            raise error
        return True

"""Single-writer diagnostic sink for subprocess output.

machine-env runtime module v0.1.0

Both stream pumps of a running process report lines here. Lines travel
through a bounded ``asyncio.Queue`` to one consumer task, which is the only
code that touches the logger, the stderr capture buffer and the optional
stderr callback. A line is always delivered whole, so concurrent producers
cannot interleave partial writes.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from typing import Literal

__all__ = [
    "DiagnosticSink",
    "STDERR_MAX_SIZE",
]

logger = logging.getLogger(__name__)

# Keep at most this much stderr text; oldest lines are dropped first
STDERR_MAX_SIZE = 4 * 1024 * 1024  # 4MB

# Producers block once this many lines are pending
DEFAULT_QUEUE_SIZE = 500

StreamName = Literal["stdout", "stderr"]

_CLOSE = object()


class DiagnosticSink:
    """Bounded queue with exactly one consumer that owns the outputs.

    Example:
        async with DiagnosticSink(label="docker-machine") as sink:
            await sink.put("stderr", "Error: host not found")
        print(sink.text)
    """

    def __init__(
        self,
        *,
        label: str = "",
        warn_stderr: bool = True,
        on_stderr: Callable[[str], None] | None = None,
        max_captured: int = STDERR_MAX_SIZE,
        maxsize: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.label = label
        self.warn_stderr = warn_stderr
        self._on_stderr = on_stderr
        self._max_captured = max_captured
        self._queue: asyncio.Queue[tuple[StreamName, str] | object] = asyncio.Queue(
            maxsize=maxsize
        )
        self._captured: deque[str] = deque()
        self._captured_size = 0
        self._consumer: asyncio.Task[None] | None = None

    async def __aenter__(self) -> DiagnosticSink:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @property
    def text(self) -> str:
        """Captured stderr, one line per line, oldest first."""
        return "\n".join(self._captured)

    def start(self) -> None:
        if self._consumer is None:
            self._consumer = asyncio.create_task(self._consume())

    async def put(self, stream: StreamName, line: str) -> None:
        """Hand one complete line to the consumer (waits while the queue is full)."""
        await self._queue.put((stream, line))

    async def aclose(self) -> None:
        """Flush pending lines and stop the consumer."""
        if self._consumer is None or self._consumer.done():
            return
        await self._queue.put(_CLOSE)
        await self._consumer

    async def _consume(self) -> None:
        while True:
            item = await self._queue.get()
            if item is _CLOSE:
                return
            stream, line = item  # type: ignore[misc]
            if stream == "stderr":
                self._write_stderr(line)
            else:
                logger.debug(f"[{self.label}] {line}")

    def _write_stderr(self, line: str) -> None:
        self._captured.append(line)
        self._captured_size += len(line) + 1
        while self._captured_size > self._max_captured and len(self._captured) > 1:
            removed = self._captured.popleft()
            self._captured_size -= len(removed) + 1

        if self.warn_stderr:
            logger.warning(f"[{self.label}] {line}")
        else:
            logger.debug(f"[{self.label}] stderr: {line}")

        if self._on_stderr:
            try:
                self._on_stderr(line)
            except Exception as e:
                logger.warning(f"stderr callback failed: {e}")

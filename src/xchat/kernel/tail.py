from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

LineHandler = Callable[[str], Awaitable[None]]


class TranscriptTailer:
    """
    Follow one append-only JSONL transcript and hand each new complete line to a handler.

    - Cursor is a byte offset plus the pending (incomplete) tail of the last read
    - Size below the cursor, or a new inode, means truncation/replacement: restart at 0
    - The cursor is process-local; `start(from_end=True)` skips existing history
    """

    def __init__(self, path: Path, on_line: LineHandler, *, chat_id: str = ""):
        self.path = Path(path)
        self.on_line = on_line
        self.chat_id = chat_id
        self.offset = 0
        self._buf = b""
        self._ino: Optional[int] = None
        self._task: Optional["asyncio.Task[None]"] = None

    @property
    def pending(self) -> bytes:
        return self._buf

    def start(self, *, from_end: bool = True, watch: bool = True, interval: float = 0.25) -> None:
        """Seed the cursor and, with `watch`, spawn the polling task on the running loop.

        Errors stating the file propagate to the caller.
        """
        st = os.stat(self.path)
        self.offset = st.st_size if from_end else 0
        self._ino = st.st_ino
        self._buf = b""
        if watch and self._task is None:
            self._task = asyncio.get_running_loop().create_task(self.watch(interval))
        logger.info("tailing %s (from_end=%s)", self.path, from_end, extra={"chat_id": self.chat_id})

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    @property
    def task(self) -> Optional["asyncio.Task[None]"]:
        return self._task

    def poll(self) -> List[str]:
        """Read what was appended since the cursor and return the complete, non-blank lines."""
        st = os.stat(self.path)
        if st.st_size < self.offset or (self._ino is not None and st.st_ino != self._ino):
            logger.info("transcript truncated or replaced: %s", self.path, extra={"chat_id": self.chat_id})
            self.offset = 0
            self._buf = b""
        self._ino = st.st_ino
        if st.st_size == self.offset:
            return []

        with open(self.path, "rb") as f:
            f.seek(self.offset)
            chunk = f.read(st.st_size - self.offset)
        self.offset += len(chunk)

        # Split on bytes so a multi-byte character cut by a read stays intact.
        parts = (self._buf + chunk).split(b"\n")
        self._buf = parts.pop()
        lines: List[str] = []
        for raw in parts:
            text = raw.decode("utf-8", errors="replace").strip()
            if text:
                lines.append(text)
        return lines

    async def dispatch(self) -> int:
        """Poll once and await the handler for each new line, in order."""
        lines = self.poll()
        for line in lines:
            try:
                await self.on_line(line)
            except Exception:
                # One bad line must not block the ones after it.
                logger.exception("line handler error", extra={"chat_id": self.chat_id})
        return len(lines)

    async def watch(self, interval: float = 0.25) -> None:
        while True:
            try:
                await self.dispatch()
            except OSError as e:
                logger.warning("transcript read failed: %s", e, extra={"chat_id": self.chat_id})
            await asyncio.sleep(interval)

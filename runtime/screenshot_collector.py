from __future__ import annotations

import asyncio
import enum
from collections import deque
from typing import Any, Deque, Optional, Tuple


class CollectorState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class ScreenshotCollector:
    """Background screenshot sampler feeding a fixed-size ring buffer.

    The capture loop shares the event loop with the agent driving the same
    page. Every capture is best-effort: failures and slow captures are skipped
    so the agent is never blocked or interrupted. Only the most recent
    `max_screenshots` frames are kept, oldest evicted first.
    """

    def __init__(
        self,
        page: Any,
        max_screenshots: int = 8,
        interval_s: float = 5.0,
        capture_timeout_s: float = 3.0,
    ) -> None:
        if max_screenshots < 1:
            raise ValueError("max_screenshots must be >= 1")
        self.page = page
        self.max_screenshots = max_screenshots
        self.interval_s = interval_s
        self.capture_timeout_s = capture_timeout_s
        self.state = CollectorState.IDLE
        self.captured = 0
        self.failed_captures = 0
        self._buffer: Deque[bytes] = deque(maxlen=max_screenshots)
        self._task: Optional[asyncio.Task[None]] = None
        self._snapshot: Tuple[bytes, ...] = ()

    def start(self) -> None:
        """Begin periodic capture; must be called from inside a running event loop."""

        if self.state is not CollectorState.IDLE:
            raise RuntimeError(f"ScreenshotCollector cannot start from state '{self.state.value}'")
        loop = asyncio.get_running_loop()
        self.state = CollectorState.RUNNING
        self._task = loop.create_task(self._run())

    async def stop(self) -> Tuple[bytes, ...]:
        """Cancel capture and hand back the buffered frames in capture order.

        Safe in cleanup paths: before `start()` it returns an empty tuple, and
        repeated calls return the same snapshot.
        """

        if self.state is not CollectorState.RUNNING:
            return self._snapshot
        self.state = CollectorState.STOPPED
        # add_frame rejects new frames from here on, so the snapshot is final.
        self._snapshot = tuple(self._buffer)
        self._buffer.clear()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])
        return self._snapshot

    def add_frame(self, frame: bytes) -> bool:
        """Record a frame captured by the agent itself; ignored unless running."""

        if self.state is not CollectorState.RUNNING or not frame:
            return False
        self._buffer.append(bytes(frame))
        self.captured += 1
        return True

    @property
    def frames(self) -> Tuple[bytes, ...]:
        """Current buffer contents (or the final snapshot once stopped)."""

        if self.state is CollectorState.STOPPED:
            return self._snapshot
        return tuple(self._buffer)

    async def capture_once(self) -> bool:
        """Take one screenshot, skipping it on any page error or timeout."""

        try:
            frame = await asyncio.wait_for(self.page.screenshot(), timeout=self.capture_timeout_s)
        except Exception:
            # Navigation in flight or session closed; the next tick retries.
            self.failed_captures += 1
            return False
        return self.add_frame(frame)

    async def _run(self) -> None:
        while self.state is CollectorState.RUNNING:
            await self.capture_once()
            await asyncio.sleep(self.interval_s)

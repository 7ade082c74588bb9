"""
Progress delivery for one session.

ProgressChannel is a two-channel producer: an ordered stream of events and
exactly one terminal item (result or failure). The session drains it, so
every event emitted before the result reaches the caller before the result.

NotificationStreamer emits numbered events into a ProgressChannel, checking
the session's liveness before each one.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple

from knowreply_mcp.core.actions.models import NotificationEvent
from knowreply_mcp.core.coerce import utc_now_iso

logger = logging.getLogger(__name__)


class _Kind(enum.Enum):
    EVENT = "event"
    RESULT = "result"
    ERROR = "error"
    ABANDONED = "abandoned"


class ProgressChannel:
    def __init__(self) -> None:
        self._queue: "asyncio.Queue[Tuple[_Kind, Any]]" = asyncio.Queue()
        self._terminal = False

    @property
    def terminated(self) -> bool:
        return self._terminal

    def emit(self, event: NotificationEvent) -> bool:
        if self._terminal:
            return False
        self._queue.put_nowait((_Kind.EVENT, event))
        return True

    def _end(self, kind: _Kind, value: Any) -> bool:
        if self._terminal:
            return False
        self._terminal = True
        self._queue.put_nowait((kind, value))
        return True

    def finish(self, result: Any) -> bool:
        return self._end(_Kind.RESULT, result)

    def fail(self, exc: BaseException) -> bool:
        return self._end(_Kind.ERROR, exc)

    def abandon(self) -> bool:
        """Caller went away: whatever the producer finishes with is discarded."""
        return self._end(_Kind.ABANDONED, None)

    async def drain(self, on_event: Callable[[NotificationEvent], Awaitable[None]]) -> Tuple[bool, Any]:
        """
        Relay events until the terminal item.
        Returns (delivered, result); delivered is False when abandoned.
        Raises the producer's exception on failure.
        """
        while True:
            kind, value = await self._queue.get()
            if kind is _Kind.EVENT:
                await on_event(value)
            elif kind is _Kind.RESULT:
                return True, value
            elif kind is _Kind.ERROR:
                raise value
            else:
                return False, None


def notification_text(sequence: int, timestamp: str) -> str:
    return f"Notification #{sequence} at {timestamp}"


class NotificationStreamer:
    def __init__(
        self,
        progress: ProgressChannel,
        is_alive: Callable[[], bool],
        closed: Optional[asyncio.Event] = None,
    ) -> None:
        self._progress = progress
        self._is_alive = is_alive
        self._closed = closed or asyncio.Event()
        self._sequence = 0

    @property
    def sent(self) -> int:
        return self._sequence

    def publish(self, data: Any, level: str = "info") -> Optional[NotificationEvent]:
        if not self._is_alive():
            return None
        self._sequence += 1
        event = NotificationEvent(level=level, data=data, sequence=self._sequence, timestamp=utc_now_iso())
        if not self._progress.emit(event):
            self._sequence -= 1
            return None
        return event

    async def _pause(self, interval_ms: int) -> None:
        if interval_ms <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._closed.wait(), timeout=interval_ms / 1000.0)
        except asyncio.TimeoutError:
            pass

    async def stream(
        self,
        count: int,
        interval_ms: int,
        *,
        level: str = "info",
        text: Callable[[int, str], str] = notification_text,
    ) -> int:
        """
        Emit up to `count` events, `interval_ms` apart; returns how many went out.
        Stops silently once the session is no longer alive.
        """
        emitted = 0
        for i in range(count):
            if i > 0:
                await self._pause(interval_ms)
            if not self._is_alive():
                logger.info("stream stopped after %d/%d events: session closed", emitted, count)
                break
            seq = self._sequence + 1
            if self.publish(text(seq, utc_now_iso()), level=level) is None:
                break
            emitted += 1
        return emitted

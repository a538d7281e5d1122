from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, TypeVar

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class ProgressEvent:
    current: int
    current_file: str


@dataclass(slots=True)
class OperationProgress:
    total: int = 0
    current: int = 0
    current_file: str = ""
    running: bool = False

    def start(self, total: int) -> None:
        self.total = total
        self.current = 0
        self.current_file = ""
        self.running = True

    def apply(self, event: ProgressEvent) -> None:
        self.current = event.current
        self.current_file = event.current_file

    def finish(self) -> None:
        self.running = False


class ProgressChannel:
    """Unbounded event queue between an operation and whoever renders it."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()

    def emit(self, current: int, current_file: str) -> None:
        self._queue.put_nowait(ProgressEvent(current=current, current_file=current_file))

    def close(self) -> None:
        self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


async def run_with_progress(
    operation: Awaitable[T],
    channel: ProgressChannel,
    on_event: Callable[[ProgressEvent], None],
) -> T:
    async def _consume() -> None:
        async for event in channel:
            on_event(event)

    consumer = asyncio.create_task(_consume())
    try:
        return await operation
    finally:
        channel.close()
        await consumer

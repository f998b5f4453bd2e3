from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Union

DEFAULT_CAPACITY = 32


@dataclass(frozen=True)
class StageStarted:
    stage_id: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "started", "stage_id": self.stage_id, "description": self.description}


@dataclass(frozen=True)
class StageProgress:
    stage_id: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "progress", "stage_id": self.stage_id, "message": self.message}


@dataclass(frozen=True)
class StageComplete:
    stage_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "complete", "stage_id": self.stage_id}


@dataclass(frozen=True)
class StageFailed:
    stage_id: str
    error: BaseException = field(compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "failed", "stage_id": self.stage_id, "error": str(self.error)}


ProgressEvent = Union[StageStarted, StageProgress, StageComplete, StageFailed]

_CLOSED = object()


class ProgressChannel:
    """Bounded single-producer/single-consumer event queue.

    ``send`` waits for room instead of dropping events.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, event: ProgressEvent) -> None:
        if self._closed:
            raise RuntimeError("progress channel is closed")
        await self._queue.put(event)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item

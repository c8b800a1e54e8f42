from __future__ import annotations

import json
import logging
from enum import Enum
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable, Optional, Protocol

from nutrichat.services.events import DeltaEvent, DeltaEventMapper, StreamDone, StreamError, to_sse
from nutrichat.services.stream_parsing import BalancedObjectExtractor, ByteToTextDecoder

logger = logging.getLogger("uvicorn.error")


class ByteStream(Protocol):
    def aiter_bytes(self) -> AsyncIterator[bytes]:
        ...

    async def aclose(self) -> None:
        ...


class RelayState(str, Enum):
    open = "open"
    reading = "reading"
    draining = "draining"
    closed = "closed"


class StreamRelay:
    """Turns one upstream byte stream into ordered ``DeltaEvent`` values.

    Iterating the relay pulls the next upstream chunk only after every event
    derived from the previous one has been consumed. The stream always ends
    with exactly one ``StreamDone`` or ``StreamError``; the upstream response
    is released when iteration finishes, fails, or the consumer goes away.
    """

    def __init__(
        self,
        open_stream: Callable[[], Awaitable[ByteStream]],
        *,
        mapper: Optional[DeltaEventMapper] = None,
    ) -> None:
        self.state = RelayState.open
        self._open_stream = open_stream
        self._source: Optional[ByteStream] = None
        self._decoder = ByteToTextDecoder()
        self._extractor = BalancedObjectExtractor()
        self._mapper = mapper or DeltaEventMapper()
        self._events: Optional[AsyncGenerator[DeltaEvent, None]] = None

    @property
    def closed(self) -> bool:
        return self.state is RelayState.closed

    def __aiter__(self) -> AsyncGenerator[DeltaEvent, None]:
        if self._events is None:
            self._events = self._run()
        return self._events

    async def sse(self) -> AsyncIterator[str]:
        async for event in self:
            yield to_sse(event)

    async def _run(self) -> AsyncGenerator[DeltaEvent, None]:
        if self.state is not RelayState.open:
            return
        try:
            self._source = await self._open_stream()
            if self.closed:
                return
            self.state = RelayState.reading
            async for chunk in self._source.aiter_bytes():
                if self.closed:
                    return
                for event in self._events_from(self._decoder.feed(chunk)):
                    if self.closed:
                        return
                    yield event
            if self.closed:
                return
            self.state = RelayState.draining
            for event in self._events_from(self._decoder.finish()):
                if self.closed:
                    return
                yield event
            self._log_leftover()
            if not self.closed:
                yield StreamDone()
        except Exception as exc:
            if self.closed:
                return
            logger.exception("chat_stream_failed state=%s detail=%s", self.state.value, str(exc))
            yield StreamError(message=str(exc) or exc.__class__.__name__)
        finally:
            await self._release()

    def _events_from(self, text: str) -> list[DeltaEvent]:
        events: list[DeltaEvent] = []
        for fragment in self._extractor.feed(text):
            try:
                parsed = json.loads(fragment)
            except json.JSONDecodeError as exc:
                logger.warning("chat_stream_fragment_malformed detail=%s fragment=%s", str(exc), fragment[:200])
                continue
            events.extend(self._mapper.map(parsed))
        return events

    def _log_leftover(self) -> None:
        leftover = self._extractor.buffer.strip().strip("[],").strip()
        if leftover:
            logger.warning("chat_stream_trailing_fragment chars=%s", len(leftover))

    async def _release(self) -> None:
        self.state = RelayState.closed
        source, self._source = self._source, None
        if source is not None:
            await source.aclose()

    async def aclose(self) -> None:
        events = self._events
        if events is not None and not events.ag_running:
            await events.aclose()
        await self._release()

"""WebSocket connection adapter for the key-value protocol."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any

import websockets
from loguru import logger

from kvwire.client.dispatcher import CallDispatcher
from kvwire.client.events import EventCallback, EventKind, emit_event
from kvwire.client.pending import PendingCalls
from kvwire.config.schema import ClientConfig
from kvwire.protocol.codec import decode_response, encode_request
from kvwire.protocol.types import Request, ResponseVariant
from kvwire.utils.exceptions import (
    CallTimeoutError,
    ConnectionClosedError,
    MalformedFrameError,
    classify_exception,
)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class KvConnection:
    """One transport session: CONNECTING -> OPEN -> CLOSED.

    CLOSED is terminal; reconnecting needs a new instance. Calls issued
    while CONNECTING are queued and flushed in order once the socket opens.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        config: ClientConfig | None = None,
        on_event: EventCallback | None = None,
    ):
        self.config = config or ClientConfig()
        self.url = url or self.config.url
        self._on_event = on_event

        self._state = ConnectionState.CONNECTING
        self._ws: Any = None
        self._pending = PendingCalls()
        self._dispatcher = CallDispatcher(self._pending, on_event=on_event)
        self._outbox: asyncio.Queue[tuple[int, bytes]] = asyncio.Queue()
        self._reader_task: asyncio.Task | None = None
        self._writer_task: asyncio.Task | None = None
        self._close_reason: str | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def pending_count(self) -> int:
        """Number of calls still awaiting a response."""
        return len(self._pending)

    @property
    def close_reason(self) -> str | None:
        return self._close_reason

    async def __aenter__(self) -> KvConnection:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _connect_transport(self) -> Any:
        """Open the underlying socket. Tests override this with a fake."""
        return await websockets.connect(
            self.url,
            open_timeout=self.config.open_timeout,
            close_timeout=self.config.close_timeout,
            ping_interval=self.config.ping_interval,
            ping_timeout=self.config.ping_timeout,
            max_size=self.config.max_frame_size,
        )

    async def open(self) -> None:
        """Connect, then start the writer (flushing queued calls) and reader tasks."""
        if self._state is ConnectionState.CLOSED:
            raise ConnectionClosedError(self._close_reason or "connection closed")
        if self._ws is not None:
            logger.warning("Connection is already open")
            return

        logger.info(f"Connecting to {self.url}")
        try:
            ws = await self._connect_transport()
        except Exception as e:
            code, _, _ = classify_exception(e)
            logger.error(f"Connection to {self.url} failed [{code}]: {e}")
            await self._shutdown(f"connect failed: {e}")
            raise ConnectionClosedError(f"connect failed: {e}") from e

        if self._state is ConnectionState.CLOSED:
            # close() won the race while the handshake was in flight
            await self._close_transport(ws)
            raise ConnectionClosedError(self._close_reason or "connection closed")

        self._ws = ws
        self._state = ConnectionState.OPEN
        logger.info(f"Connected to {self.url} ({self._outbox.qsize()} queued calls)")
        emit_event(self._on_event, EventKind.OPENED, url=self.url, queued=self._outbox.qsize())
        self._writer_task = asyncio.create_task(self._writer_loop())
        self._reader_task = asyncio.create_task(self._reader_loop())

    def issue_call(self, request: Request, *, timeout: float | None = None) -> asyncio.Future[ResponseVariant]:
        """Register a pending call, queue its frame and return the completion future.

        Raises ConnectionClosedError once closed and EncodingError for an
        invalid request; in both cases nothing is transmitted.
        """
        if self._state is ConnectionState.CLOSED:
            raise ConnectionClosedError(self._close_reason or "connection closed")
        frame = encode_request(request)
        variant = request.variant

        loop = asyncio.get_running_loop()
        future: asyncio.Future[ResponseVariant] = loop.create_future()
        call = self._pending.register(request.kind, variant.key, future)

        deadline = timeout if timeout is not None else self.config.call_timeout
        if deadline is not None:
            call.timeout_handle = loop.call_later(deadline, self._expire, call.call_id, deadline)

        self._outbox.put_nowait((call.call_id, frame))
        logger.debug(f"Queued {call.kind.value} call #{call.call_id} ({len(frame)} bytes)")
        return future

    def _expire(self, call_id: int, seconds: float) -> None:
        call = self._pending.expire(call_id)
        if call is None:
            return
        call.timeout_handle = None
        logger.warning(f"{call.kind.value} call #{call_id} for key {call.key!r} timed out after {seconds}s")
        call.reject(CallTimeoutError(call.kind.value, seconds))
        emit_event(self._on_event, EventKind.CALL_TIMEOUT, call_id=call_id, call_kind=call.kind.value, sent=call.sent)

    def feed_frame(self, message: bytes | str) -> None:
        """Decode one inbound message and dispatch it. Bad frames are logged and dropped."""
        if isinstance(message, str):
            logger.error(f"Dropping text message ({len(message)} chars); protocol is binary")
            emit_event(self._on_event, EventKind.MALFORMED_FRAME, error="text message")
            return
        try:
            response = decode_response(message)
        except MalformedFrameError as e:
            logger.error(f"Dropping malformed frame: {e}")
            emit_event(self._on_event, EventKind.MALFORMED_FRAME, error=e.message, tag=e.tag)
            return
        logger.debug(f"Received frame tag 0x{response.tag:02x} ({len(message)} bytes)")
        self._dispatcher.dispatch(response)

    async def _writer_loop(self) -> None:
        while True:
            call_id, frame = await self._outbox.get()
            call = self._pending.get(call_id)
            if call is None:
                logger.debug(f"Skipping frame of call #{call_id}; no longer pending")
                continue
            call.sent = True
            try:
                await self._ws.send(frame)
            except Exception as e:
                code, _, _ = classify_exception(e)
                logger.error(f"Send failed [{code}]: {e}")
                await self._shutdown(f"send failed: {e}")
                return

    async def _reader_loop(self) -> None:
        try:
            async for message in self._ws:
                self.feed_frame(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            code, _, _ = classify_exception(e)
            logger.error(f"Connection error [{code}]: {e}")
            reason = f"transport error: {e}"
        else:
            reason = "closed by peer"
        await self._shutdown(reason)

    async def close(self) -> None:
        """Close the session; every outstanding call fails with ConnectionClosedError."""
        await self._shutdown("closed by client")

    async def _shutdown(self, reason: str) -> None:
        if self._state is ConnectionState.CLOSED:
            return
        self._state = ConnectionState.CLOSED
        self._close_reason = reason

        rejected = self._pending.reject_all(lambda: ConnectionClosedError(reason))
        while not self._outbox.empty():
            self._outbox.get_nowait()

        current = asyncio.current_task()
        tasks = [t for t in (self._reader_task, self._writer_task) if t is not None and t is not current]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._ws is not None:
            await self._close_transport(self._ws)

        logger.info(f"Connection to {self.url} closed ({reason}); rejected {rejected} pending calls")
        emit_event(self._on_event, EventKind.CLOSED, reason=reason, rejected=rejected)

    @staticmethod
    async def _close_transport(ws: Any) -> None:
        try:
            await ws.close()
        except Exception as e:
            logger.debug(f"Error while closing socket: {e}")

"""Tests for KvConnection lifecycle, queueing and error paths (fake socket)."""

from __future__ import annotations

import asyncio

import pytest

from kvwire.client.client import KvClient
from kvwire.client.connection import ConnectionState, KvConnection
from kvwire.client.events import ClientEvent, EventKind
from kvwire.config.schema import ClientConfig
from kvwire.protocol import (
    GetRequest,
    GetResponse,
    Request,
    Response,
    SetRequest,
    SetResponse,
    encode_request,
    encode_response,
)
from kvwire.utils.exceptions import CallTimeoutError, ConnectionClosedError, EncodingError

_DONE = object()


class _FakeWs:
    def __init__(self) -> None:
        self.sent: list[bytes] = []
        self.closed = False
        self._inbound: asyncio.Queue[object] = asyncio.Queue()

    def push(self, message: bytes | str) -> None:
        self._inbound.put_nowait(message)

    def push_response(self, response: Response) -> None:
        self.push(encode_response(response))

    def hang_up(self) -> None:
        self._inbound.put_nowait(_DONE)

    async def send(self, frame: bytes) -> None:
        self.sent.append(frame)

    async def close(self) -> None:
        self.closed = True
        self._inbound.put_nowait(_DONE)

    def __aiter__(self) -> _FakeWs:
        return self

    async def __anext__(self) -> object:
        item = await self._inbound.get()
        if item is _DONE:
            raise StopAsyncIteration
        return item


async def _settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


def _connection(**config: object) -> tuple[KvConnection, _FakeWs, list[ClientEvent]]:
    events: list[ClientEvent] = []
    ws = _FakeWs()
    conn = KvConnection("ws://example", config=ClientConfig(**config), on_event=events.append)

    async def _fake_connect() -> _FakeWs:
        return ws

    conn._connect_transport = _fake_connect  # type: ignore[method-assign]
    return conn, ws, events


def _get(key: str) -> Request:
    return Request(get_request=GetRequest(key=key))


def _set(key: str, value: str) -> Request:
    return Request(set_request=SetRequest(key=key, value=value))


@pytest.mark.asyncio
async def test_calls_queued_while_connecting_flush_in_order() -> None:
    conn, ws, events = _connection()
    assert conn.state is ConnectionState.CONNECTING
    conn.issue_call(_set("name", "Franz Sinaga"))
    conn.issue_call(_get("name"))
    assert ws.sent == []

    await conn.open()
    await _settle()

    assert conn.state is ConnectionState.OPEN
    assert ws.sent == [encode_request(_set("name", "Franz Sinaga")), encode_request(_get("name"))]
    assert events[0].kind is EventKind.OPENED
    assert events[0].detail["queued"] == 2
    await conn.close()


@pytest.mark.asyncio
async def test_concurrent_gets_resolve_fifo() -> None:
    conn, ws, _ = _connection()
    await conn.open()
    first = conn.issue_call(_get("a"))
    second = conn.issue_call(_get("b"))

    ws.push_response(Response(get_response=GetResponse(key="a", value="value1")))
    ws.push_response(Response(get_response=GetResponse(key="b", value="value2")))

    assert (await first).value == "value1"
    assert (await second).value == "value2"
    assert conn.pending_count == 0
    await conn.close()


@pytest.mark.asyncio
async def test_close_rejects_every_pending_call() -> None:
    conn, ws, events = _connection()
    await conn.open()
    futures = [conn.issue_call(_get(str(i))) for i in range(3)]

    await conn.close()

    for future in futures:
        with pytest.raises(ConnectionClosedError):
            await future
    assert conn.state is ConnectionState.CLOSED
    assert conn.pending_count == 0
    assert ws.closed is True
    assert events[-1].kind is EventKind.CLOSED
    assert events[-1].detail["rejected"] == 3


@pytest.mark.asyncio
async def test_call_after_close_fails_immediately() -> None:
    conn, ws, _ = _connection()
    await conn.open()
    await conn.close()

    with pytest.raises(ConnectionClosedError):
        conn.issue_call(_get("a"))
    with pytest.raises(ConnectionClosedError):
        await conn.open()
    assert ws.sent == []


@pytest.mark.asyncio
async def test_close_while_connecting_rejects_queued_calls() -> None:
    conn, ws, _ = _connection()
    future = conn.issue_call(_set("k", "v"))

    await conn.close()

    with pytest.raises(ConnectionClosedError):
        await future
    assert ws.sent == []


@pytest.mark.asyncio
async def test_malformed_frame_does_not_stop_processing() -> None:
    conn, ws, events = _connection()
    await conn.open()
    future = conn.issue_call(_get("a"))

    ws.push(b"\x12\x01")
    ws.push("not binary")
    ws.push_response(Response(get_response=GetResponse(key="a", value="ok")))

    assert (await future).value == "ok"
    malformed = [e for e in events if e.kind is EventKind.MALFORMED_FRAME]
    assert len(malformed) == 2
    assert malformed[0].detail["tag"] == 0x12
    assert conn.state is ConnectionState.OPEN
    await conn.close()


@pytest.mark.asyncio
async def test_unknown_variant_keeps_call_pending() -> None:
    conn, ws, events = _connection()
    await conn.open()
    future = conn.issue_call(_set("a", "b"))

    ws.push(b"\x55whatever")
    await _settle()
    assert not future.done()
    assert any(e.kind is EventKind.UNKNOWN_VARIANT for e in events)

    ws.push_response(Response(set_response=SetResponse()))
    assert await future == SetResponse()
    await conn.close()


@pytest.mark.asyncio
async def test_peer_hang_up_rejects_pending_calls() -> None:
    conn, ws, _ = _connection()
    await conn.open()
    future = conn.issue_call(_get("a"))

    ws.hang_up()

    with pytest.raises(ConnectionClosedError) as exc_info:
        await future
    assert "closed by peer" in exc_info.value.message
    assert conn.state is ConnectionState.CLOSED
    assert conn.close_reason == "closed by peer"


@pytest.mark.asyncio
async def test_connect_failure_closes_and_rejects_queued_calls() -> None:
    conn = KvConnection("ws://example")
    future = conn.issue_call(_get("a"))

    async def _refuse() -> None:
        raise OSError("connection refused")

    conn._connect_transport = _refuse  # type: ignore[method-assign]

    with pytest.raises(ConnectionClosedError) as exc_info:
        await conn.open()
    assert isinstance(exc_info.value.__cause__, OSError)
    assert conn.state is ConnectionState.CLOSED
    with pytest.raises(ConnectionClosedError):
        await future


@pytest.mark.asyncio
async def test_send_failure_closes_connection() -> None:
    conn, ws, _ = _connection()

    async def _broken_send(_: bytes) -> None:
        raise ConnectionResetError("reset by peer")

    ws.send = _broken_send  # type: ignore[method-assign]
    await conn.open()
    future = conn.issue_call(_get("a"))

    with pytest.raises(ConnectionClosedError):
        await future
    assert conn.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_call_timeout_rejects_only_that_call() -> None:
    conn, ws, events = _connection()
    await conn.open()
    slow = conn.issue_call(_get("slow"), timeout=0.05)
    other = conn.issue_call(_get("other"))

    with pytest.raises(CallTimeoutError) as exc_info:
        await slow
    assert exc_info.value.details["operation"] == "get"
    assert conn.pending_count == 1
    timeouts = [e for e in events if e.kind is EventKind.CALL_TIMEOUT]
    assert len(timeouts) == 1
    assert timeouts[0].detail["call_kind"] == "get"
    assert timeouts[0].detail["sent"] is True

    ws.push_response(Response(get_response=GetResponse(key="other", value="v")))
    assert (await other).value == "v"
    await conn.close()


@pytest.mark.asyncio
async def test_call_expired_before_open_is_never_sent() -> None:
    conn, ws, events = _connection()
    stale = conn.issue_call(_set("a", "old"), timeout=0.01)
    with pytest.raises(CallTimeoutError):
        await stale
    assert conn.pending_count == 0
    assert events[-1].detail["sent"] is False

    fresh = conn.issue_call(_set("a", "new"))
    await conn.open()
    await _settle()
    assert ws.sent == [encode_request(_set("a", "new"))]

    ws.push_response(Response(set_response=SetResponse()))
    assert await fresh == SetResponse()
    await conn.close()


@pytest.mark.asyncio
async def test_late_ack_for_expired_set_does_not_resolve_next_set() -> None:
    conn, ws, _ = _connection()
    await conn.open()
    stale = conn.issue_call(_set("a", "old"), timeout=0.05)
    await _settle()
    assert len(ws.sent) == 1
    with pytest.raises(CallTimeoutError):
        await stale
    assert conn.pending_count == 0

    fresh = conn.issue_call(_set("a", "new"))
    ws.push_response(Response(set_response=SetResponse()))
    await _settle()
    assert not fresh.done()
    assert conn.pending_count == 1

    ws.push_response(Response(set_response=SetResponse()))
    assert await fresh == SetResponse()
    assert conn.pending_count == 0
    await conn.close()


@pytest.mark.asyncio
async def test_configured_call_timeout_applies_by_default() -> None:
    conn, _, _ = _connection(call_timeout=0.05)
    await conn.open()
    with pytest.raises(CallTimeoutError):
        await conn.issue_call(_set("a", "b"))
    assert conn.state is ConnectionState.OPEN
    await conn.close()


@pytest.mark.asyncio
async def test_invalid_request_is_rejected_synchronously() -> None:
    conn, ws, _ = _connection()
    await conn.open()
    with pytest.raises(EncodingError):
        conn.issue_call(Request())
    await _settle()
    assert ws.sent == []
    assert conn.pending_count == 0
    await conn.close()


@pytest.mark.asyncio
async def test_client_set_and_get_return_typed_responses() -> None:
    ws = _FakeWs()
    client = KvClient("ws://example")

    async def _fake_connect() -> _FakeWs:
        return ws

    client.connection._connect_transport = _fake_connect  # type: ignore[method-assign]

    async with client:
        set_future = client.set("name", "Franz Sinaga")
        ws.push_response(Response(set_response=SetResponse()))
        assert await set_future == SetResponse()

        get_future = client.get("name")
        ws.push_response(Response(get_response=GetResponse(key="name", value="Franz Sinaga")))
        assert await get_future == GetResponse(key="name", value="Franz Sinaga")

    assert client.state is ConnectionState.CLOSED
    with pytest.raises(ConnectionClosedError):
        client.get("name")

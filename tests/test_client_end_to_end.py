"""End-to-end: KvClient against the reference server over a loopback WebSocket."""

from __future__ import annotations

import asyncio

import pytest

from kvwire.client import ClientEvent, ConnectionState, EventKind, KvClient, connect
from kvwire.config.schema import ClientConfig, ServerConfig
from kvwire.protocol import GetResponse, SetResponse
from kvwire.server import KvServer
from kvwire.utils.exceptions import ConnectionClosedError


def _server() -> KvServer:
    return KvServer(ServerConfig(host="127.0.0.1", port=0))


@pytest.mark.asyncio
async def test_set_then_get_scenario() -> None:
    async with _server() as server:
        async with KvClient(server.url) as client:
            assert await client.set("name", "Franz Sinaga") == SetResponse()
            res = await client.get("name")
            assert res == GetResponse(key="name", value="Franz Sinaga")
        assert server.store.get("name") == "Franz Sinaga"


@pytest.mark.asyncio
async def test_pipelined_calls_resolve_in_order() -> None:
    async with _server() as server:
        client = await connect(server.url)
        try:
            acks = [client.set(f"k{i}", f"v{i}") for i in range(5)]
            gets = [client.get(f"k{i}") for i in range(5)]
            assert await asyncio.gather(*acks) == [SetResponse()] * 5
            values = [res.value for res in await asyncio.gather(*gets)]
            assert values == [f"v{i}" for i in range(5)]
        finally:
            await client.close()


@pytest.mark.asyncio
async def test_missing_key_returns_empty_value() -> None:
    async with _server() as server:
        async with KvClient(server.url) as client:
            assert await client.get("absent") == GetResponse(key="absent", value="")


@pytest.mark.asyncio
async def test_server_shutdown_rejects_outstanding_calls() -> None:
    events: list[ClientEvent] = []
    server = _server()
    await server.start()
    client = KvClient(config=ClientConfig(url=server.url), on_event=events.append)
    await client.connect()
    assert client.state is ConnectionState.OPEN

    await server.stop()
    for _ in range(100):
        if client.state is ConnectionState.CLOSED:
            break
        await asyncio.sleep(0.01)

    assert client.state is ConnectionState.CLOSED
    with pytest.raises(ConnectionClosedError):
        client.set("late", "call")
    assert events[-1].kind is EventKind.CLOSED


@pytest.mark.asyncio
async def test_connect_to_unreachable_server_fails() -> None:
    server = _server()
    await server.start()
    url = server.url
    await server.stop()

    client = KvClient(url, config=ClientConfig(open_timeout=2.0))
    with pytest.raises(ConnectionClosedError):
        await client.connect()
    assert client.state is ConnectionState.CLOSED

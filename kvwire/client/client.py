"""Client-facing set/get API over a KvConnection."""

from __future__ import annotations

import asyncio
from typing import Any

from kvwire.client.connection import ConnectionState, KvConnection
from kvwire.client.events import EventCallback
from kvwire.config.schema import ClientConfig
from kvwire.protocol.types import GetRequest, GetResponse, Request, SetRequest, SetResponse


class KvClient:
    """Key-value client.

    ``set`` and ``get`` return immediately with a future; await it for the
    typed response. Both raise ConnectionClosedError after close, and the
    future fails with CallTimeoutError when a call timeout is configured
    and exceeded.

    Usage:
        async with KvClient("ws://localhost:8080") as client:
            await client.set("name", "Franz Sinaga")
            res = await client.get("name")
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        config: ClientConfig | None = None,
        on_event: EventCallback | None = None,
    ):
        self._conn = KvConnection(url, config=config, on_event=on_event)

    @property
    def connection(self) -> KvConnection:
        return self._conn

    @property
    def state(self) -> ConnectionState:
        return self._conn.state

    async def connect(self) -> KvClient:
        await self._conn.open()
        return self

    async def close(self) -> None:
        await self._conn.close()

    async def __aenter__(self) -> KvClient:
        return await self.connect()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def set(self, key: str, value: str, *, timeout: float | None = None) -> asyncio.Future[SetResponse]:
        request = Request(set_request=SetRequest(key=key, value=value))
        return self._conn.issue_call(request, timeout=timeout)  # type: ignore[return-value]

    def get(self, key: str, *, timeout: float | None = None) -> asyncio.Future[GetResponse]:
        request = Request(get_request=GetRequest(key=key))
        return self._conn.issue_call(request, timeout=timeout)  # type: ignore[return-value]


async def connect(url: str | None = None, **kwargs: Any) -> KvClient:
    """Create a client and open its connection."""
    return await KvClient(url, **kwargs).connect()

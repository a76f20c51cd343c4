"""Reference WebSocket server for the key-value protocol."""

from __future__ import annotations

import asyncio
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed
from loguru import logger

from kvwire.config.schema import ServerConfig
from kvwire.protocol.codec import decode_request, encode_response
from kvwire.server.store import KeyValueStore, handle_request
from kvwire.utils.exceptions import MalformedFrameError


class KvServer:
    """Serves one shared KeyValueStore to any number of connections."""

    def __init__(self, config: ServerConfig | None = None, store: KeyValueStore | None = None):
        self.config = config or ServerConfig()
        self.store = store if store is not None else KeyValueStore()
        self._server: Any = None

    @property
    def port(self) -> int:
        """Bound port (resolves an ephemeral port 0)."""
        if self._server is None:
            return self.config.port
        return self._server.sockets[0].getsockname()[1]

    @property
    def url(self) -> str:
        return f"ws://{self.config.host}:{self.port}"

    async def start(self) -> None:
        if self._server is not None:
            return
        self._server = await websockets.serve(self._handle_connection, self.config.host, self.config.port)
        logger.info(f"Server listening on {self.url}")

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Server stopped")

    async def serve_forever(self) -> None:
        await self.start()
        try:
            await asyncio.Future()
        finally:
            await self.stop()

    async def __aenter__(self) -> KvServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def _handle_connection(self, ws: Any) -> None:
        logger.info(f"Client connected: {ws.remote_address}")
        try:
            async for message in ws:
                reply = self.handle_message(message)
                if reply is not None:
                    await ws.send(reply)
        except ConnectionClosed as e:
            logger.debug(f"Client connection dropped: {e}")
        logger.info(f"Client disconnected: {ws.remote_address}")

    def handle_message(self, message: bytes | str) -> bytes | None:
        """Answer one inbound message; undecodable input gets no reply."""
        if isinstance(message, str):
            logger.error("Expected binary message")
            return None
        try:
            request = decode_request(message)
        except MalformedFrameError as e:
            logger.error(f"Error decoding request: {e}")
            return None
        return encode_response(handle_request(self.store, request))

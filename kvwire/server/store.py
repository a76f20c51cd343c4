"""In-memory store backing the reference server."""

from __future__ import annotations

from loguru import logger

from kvwire.protocol.types import GetResponse, Request, Response, SetRequest, SetResponse


class KeyValueStore:
    def __init__(self):
        self._data: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._data)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def get(self, key: str) -> str | None:
        return self._data.get(key)


def handle_request(store: KeyValueStore, request: Request) -> Response:
    """Apply one request and build its single reply.

    A get for a missing key answers with an empty value: the protocol has
    no not-found variant.
    """
    variant = request.variant
    if isinstance(variant, SetRequest):
        logger.info(f"SET {variant.key} = {variant.value}")
        store.set(variant.key, variant.value)
        return Response(set_response=SetResponse())
    value = store.get(variant.key)
    if value is None:
        logger.warning(f"Key not found: {variant.key}")
        value = ""
    return Response(get_response=GetResponse(key=variant.key, value=value))

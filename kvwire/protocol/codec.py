"""Binary codec for request/response envelopes.

Frame layout::

    [1-byte tag][field]*          field = [u32 little-endian length][UTF-8 bytes]

Fields follow declaration order (key before value). One transport message
carries exactly one frame, so there is no outer length prefix.
"""

from __future__ import annotations

import struct

from loguru import logger

from kvwire.protocol.types import (
    GetRequest,
    GetResponse,
    Request,
    Response,
    SetRequest,
    SetResponse,
    Tag,
    UnknownResponse,
)
from kvwire.utils.exceptions import EncodingError, MalformedFrameError

_LENGTH = struct.Struct("<I")
_MAX_FIELD_BYTES = 0xFFFFFFFF

_RESPONSE_TAGS = frozenset({Tag.SET_RESPONSE, Tag.GET_RESPONSE})


def _pack_str(value: object, field: str) -> bytes:
    if not isinstance(value, str):
        raise EncodingError(f"field '{field}' must be str, got {type(value).__name__}", field=field)
    data = value.encode("utf-8")
    if len(data) > _MAX_FIELD_BYTES:
        raise EncodingError(f"field '{field}' exceeds {_MAX_FIELD_BYTES} bytes", field=field)
    return _LENGTH.pack(len(data)) + data


class _FrameReader:
    """Sequential reader over one frame's payload."""

    def __init__(self, payload: bytes, tag: int):
        self._payload = payload
        self._tag = tag
        self._offset = 0

    def read_str(self, field: str) -> str:
        end = self._offset + _LENGTH.size
        if end > len(self._payload):
            raise MalformedFrameError(
                f"tag 0x{self._tag:02x}: missing length of '{field}'", tag=self._tag
            )
        (size,) = _LENGTH.unpack_from(self._payload, self._offset)
        if end + size > len(self._payload):
            raise MalformedFrameError(
                f"tag 0x{self._tag:02x}: '{field}' declares {size} bytes, "
                f"{len(self._payload) - end} available",
                tag=self._tag,
            )
        raw = self._payload[end:end + size]
        self._offset = end + size
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedFrameError(
                f"tag 0x{self._tag:02x}: '{field}' is not valid UTF-8", tag=self._tag
            ) from e

    def finish(self) -> None:
        extra = len(self._payload) - self._offset
        if extra:
            logger.debug("Ignoring {} trailing bytes after tag 0x{:02x}", extra, self._tag)


def _split(frame: bytes | bytearray | memoryview) -> tuple[int, bytes]:
    data = bytes(frame)
    if not data:
        raise MalformedFrameError("empty frame")
    return data[0], data[1:]


def encode_request(request: Request) -> bytes:
    """Encode a request envelope; raises EncodingError before producing any bytes."""
    if not isinstance(request, Request):
        raise EncodingError(f"expected Request, got {type(request).__name__}")
    variant = request.variant
    if isinstance(variant, SetRequest):
        body = _pack_str(variant.key, "key") + _pack_str(variant.value, "value")
        return bytes([Tag.SET_REQUEST]) + body
    if isinstance(variant, GetRequest):
        return bytes([Tag.GET_REQUEST]) + _pack_str(variant.key, "key")
    raise EncodingError(f"unsupported request variant: {type(variant).__name__}")


def decode_request(frame: bytes | bytearray | memoryview) -> Request:
    """Decode a request frame. Unknown request tags are rejected."""
    tag, payload = _split(frame)
    reader = _FrameReader(payload, tag)
    if tag == Tag.SET_REQUEST:
        key = reader.read_str("key")
        value = reader.read_str("value")
        reader.finish()
        return Request(set_request=SetRequest(key=key, value=value))
    if tag == Tag.GET_REQUEST:
        key = reader.read_str("key")
        reader.finish()
        return Request(get_request=GetRequest(key=key))
    raise MalformedFrameError(f"unknown request tag 0x{tag:02x}", tag=tag)


def encode_response(response: Response) -> bytes:
    """Encode a response envelope. Unknown variants are written back verbatim."""
    if not isinstance(response, Response):
        raise EncodingError(f"expected Response, got {type(response).__name__}")
    variant = response.variant
    if isinstance(variant, SetResponse):
        return bytes([Tag.SET_RESPONSE])
    if isinstance(variant, GetResponse):
        body = _pack_str(variant.key, "key") + _pack_str(variant.value, "value")
        return bytes([Tag.GET_RESPONSE]) + body
    if isinstance(variant, UnknownResponse):
        if not 0 <= variant.tag <= 0xFF:
            raise EncodingError(f"tag {variant.tag} does not fit in one byte", field="tag")
        if variant.tag in _RESPONSE_TAGS:
            raise EncodingError(f"tag 0x{variant.tag:02x} is a known response tag", field="tag")
        return bytes([variant.tag]) + bytes(variant.payload)
    raise EncodingError(f"unsupported response variant: {type(variant).__name__}")


def decode_response(frame: bytes | bytearray | memoryview) -> Response:
    """Decode a response frame.

    Unrecognized tags yield an ``UnknownResponse`` instead of failing;
    a recognized tag with a short or invalid payload raises MalformedFrameError.
    """
    tag, payload = _split(frame)
    if tag == Tag.SET_RESPONSE:
        _FrameReader(payload, tag).finish()
        return Response(set_response=SetResponse())
    if tag == Tag.GET_RESPONSE:
        reader = _FrameReader(payload, tag)
        key = reader.read_str("key")
        value = reader.read_str("value")
        reader.finish()
        return Response(get_response=GetResponse(key=key, value=value))
    return Response(unknown=UnknownResponse(tag=tag, payload=payload))

"""Wire protocol: envelope types and binary codec."""

from .codec import decode_request, decode_response, encode_request, encode_response
from .types import (
    CallKind,
    GetRequest,
    GetResponse,
    Request,
    RequestVariant,
    Response,
    ResponseVariant,
    SetRequest,
    SetResponse,
    Tag,
    UnknownResponse,
)

__all__ = [
    "CallKind",
    "GetRequest",
    "GetResponse",
    "Request",
    "RequestVariant",
    "Response",
    "ResponseVariant",
    "SetRequest",
    "SetResponse",
    "Tag",
    "UnknownResponse",
    "decode_request",
    "decode_response",
    "encode_request",
    "encode_response",
]

"""Envelope types for the key-value wire protocol.

A ``Request`` carries exactly one of ``SetRequest`` / ``GetRequest``; a
``Response`` carries exactly one of ``SetResponse`` / ``GetResponse`` /
``UnknownResponse``. The populated slot decides the tag written on the wire.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum, IntEnum

from kvwire.utils.exceptions import EncodingError


class Tag(IntEnum):
    """Wire tags. Stable: never renumber."""

    SET_REQUEST = 0x01
    GET_REQUEST = 0x02
    SET_RESPONSE = 0x11
    GET_RESPONSE = 0x12


class CallKind(str, Enum):
    """Kind of call a pending caller waits on."""

    SET = "set"
    GET = "get"


@dataclass(frozen=True, slots=True)
class SetRequest:
    key: str
    value: str


@dataclass(frozen=True, slots=True)
class GetRequest:
    key: str


@dataclass(frozen=True, slots=True)
class SetResponse:
    """Ack for a set; carries no payload."""


@dataclass(frozen=True, slots=True)
class GetResponse:
    key: str
    value: str


@dataclass(frozen=True, slots=True)
class UnknownResponse:
    """Response whose tag this client version does not recognize."""

    tag: int
    payload: bytes = b""


RequestVariant = SetRequest | GetRequest
ResponseVariant = SetResponse | GetResponse | UnknownResponse


_SLOT_TYPES: dict[str, type] = {
    "set_request": SetRequest,
    "get_request": GetRequest,
    "set_response": SetResponse,
    "get_response": GetResponse,
    "unknown": UnknownResponse,
}


def _single_variant(envelope: object) -> object:
    populated = [
        (f.name, getattr(envelope, f.name))
        for f in fields(envelope)  # type: ignore[arg-type]
        if getattr(envelope, f.name) is not None
    ]
    if len(populated) != 1:
        raise EncodingError(
            f"{type(envelope).__name__} must carry exactly one variant, got {len(populated)}"
        )
    slot, variant = populated[0]
    expected = _SLOT_TYPES[slot]
    if not isinstance(variant, expected):
        raise EncodingError(
            f"{type(envelope).__name__}.{slot} must hold {expected.__name__}, got {type(variant).__name__}",
            field=slot,
        )
    return variant


@dataclass(frozen=True, slots=True)
class Request:
    """Outbound envelope."""

    set_request: SetRequest | None = None
    get_request: GetRequest | None = None

    @classmethod
    def of(cls, variant: RequestVariant) -> Request:
        if isinstance(variant, SetRequest):
            return cls(set_request=variant)
        if isinstance(variant, GetRequest):
            return cls(get_request=variant)
        raise EncodingError(f"not a request variant: {type(variant).__name__}")

    @property
    def variant(self) -> RequestVariant:
        """The populated variant; raises EncodingError unless exactly one is set."""
        return _single_variant(self)  # type: ignore[return-value]

    @property
    def tag(self) -> Tag:
        return Tag.SET_REQUEST if isinstance(self.variant, SetRequest) else Tag.GET_REQUEST

    @property
    def kind(self) -> CallKind:
        return CallKind.SET if isinstance(self.variant, SetRequest) else CallKind.GET


@dataclass(frozen=True, slots=True)
class Response:
    """Inbound envelope."""

    set_response: SetResponse | None = None
    get_response: GetResponse | None = None
    unknown: UnknownResponse | None = None

    @classmethod
    def of(cls, variant: ResponseVariant) -> Response:
        if isinstance(variant, SetResponse):
            return cls(set_response=variant)
        if isinstance(variant, GetResponse):
            return cls(get_response=variant)
        if isinstance(variant, UnknownResponse):
            return cls(unknown=variant)
        raise EncodingError(f"not a response variant: {type(variant).__name__}")

    @property
    def variant(self) -> ResponseVariant:
        return _single_variant(self)  # type: ignore[return-value]

    @property
    def tag(self) -> int:
        variant = self.variant
        if isinstance(variant, SetResponse):
            return Tag.SET_RESPONSE
        if isinstance(variant, GetResponse):
            return Tag.GET_RESPONSE
        return variant.tag

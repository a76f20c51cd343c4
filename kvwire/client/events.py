"""Observability events emitted by the connection and dispatcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from loguru import logger


class EventKind(str, Enum):
    OPENED = "opened"
    CLOSED = "closed"
    UNSOLICITED_RESPONSE = "unsolicited_response"
    UNKNOWN_VARIANT = "unknown_variant"
    MALFORMED_FRAME = "malformed_frame"
    CALL_TIMEOUT = "call_timeout"


@dataclass(slots=True)
class ClientEvent:
    kind: EventKind
    detail: dict[str, Any] = field(default_factory=dict)


EventCallback = Callable[[ClientEvent], None]


def emit_event(callback: EventCallback | None, kind: EventKind, **detail: Any) -> None:
    """Deliver an event to the callback; callback failures are logged, never raised."""
    if callback is None:
        return
    try:
        callback(ClientEvent(kind=kind, detail=detail))
    except Exception as e:
        logger.error(f"Event callback failed for {kind.value}: {e}")

"""Routes decoded responses to the callers waiting for them."""

from __future__ import annotations

from typing import assert_never

from loguru import logger

from kvwire.client.events import EventCallback, EventKind, emit_event
from kvwire.client.pending import PendingCall, PendingCalls
from kvwire.protocol.types import CallKind, GetResponse, Response, SetResponse, UnknownResponse


class CallDispatcher:
    """Resolve pending calls from inbound responses.

    The protocol carries no request identifiers, so correlation is FIFO per
    call kind. A ``GetResponse`` is matched on its key first; an empty key
    falls back to the oldest pending get.
    """

    def __init__(self, pending: PendingCalls, on_event: EventCallback | None = None):
        self._pending = pending
        self._on_event = on_event

    def dispatch(self, response: Response) -> None:
        variant = response.variant
        if isinstance(variant, SetResponse):
            call = self._pending.pop_oldest(CallKind.SET)
            if call is None:
                logger.info("Received set response with no pending set call")
                emit_event(self._on_event, EventKind.UNSOLICITED_RESPONSE, tag=response.tag)
                return
            self._resolve(call, variant)
        elif isinstance(variant, GetResponse):
            call = self._pending.pop_oldest(CallKind.GET, key=variant.key)
            if call is None and not variant.key:
                call = self._pending.pop_oldest(CallKind.GET)
            if call is None:
                logger.warning(f"Received get response for key {variant.key!r} with no matching pending get")
                emit_event(
                    self._on_event, EventKind.UNSOLICITED_RESPONSE, tag=response.tag, key=variant.key
                )
                return
            self._resolve(call, variant)
        elif isinstance(variant, UnknownResponse):
            logger.warning(f"Received unknown response type 0x{variant.tag:02x} ({len(variant.payload)} bytes)")
            emit_event(self._on_event, EventKind.UNKNOWN_VARIANT, tag=variant.tag)
        else:
            assert_never(variant)

    @staticmethod
    def _resolve(call: PendingCall, result: SetResponse | GetResponse) -> None:
        if call.expired:
            logger.debug(f"Discarding late reply for expired {call.kind.value} call #{call.call_id}")
            return
        logger.debug(f"Resolving {call.kind.value} call #{call.call_id}")
        call.resolve(result)

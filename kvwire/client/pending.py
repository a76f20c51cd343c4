"""Registry of calls awaiting a response."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from typing import Any, Callable

from kvwire.protocol.types import CallKind


@dataclass
class PendingCall:
    call_id: int
    kind: CallKind
    key: str
    future: asyncio.Future[Any]
    timeout_handle: asyncio.TimerHandle | None = None
    sent: bool = False
    expired: bool = False  # timed out after its frame went out; absorbs the late reply

    def _disarm(self) -> None:
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None

    def resolve(self, result: Any) -> None:
        self._disarm()
        if not self.future.done():
            self.future.set_result(result)

    def reject(self, exc: BaseException) -> None:
        self._disarm()
        if not self.future.done():
            self.future.set_exception(exc)


class PendingCalls:
    """Insertion-ordered pending set; oldest call first.

    Expired calls whose frame was already sent stay in order as placeholders
    so the reply meant for them is not handed to a newer call. They do not
    count as pending.

    Only the owning connection mutates it, from the event loop thread.
    """

    def __init__(self):
        self._calls: dict[int, PendingCall] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return sum(1 for call in self._calls.values() if not call.expired)

    def register(self, kind: CallKind, key: str, future: asyncio.Future[Any]) -> PendingCall:
        call = PendingCall(call_id=next(self._ids), kind=kind, key=key, future=future)
        self._calls[call.call_id] = call
        return call

    def get(self, call_id: int) -> PendingCall | None:
        call = self._calls.get(call_id)
        if call is None or call.expired:
            return None
        return call

    def expire(self, call_id: int) -> PendingCall | None:
        """Take a live call out of the pending set.

        An unsent call is dropped outright; a sent one is kept as a placeholder.
        """
        call = self.get(call_id)
        if call is None:
            return None
        if call.sent:
            call.expired = True
        else:
            del self._calls[call_id]
        return call

    def pop_oldest(self, kind: CallKind, key: str | None = None) -> PendingCall | None:
        """Remove and return the oldest call of ``kind`` (matching ``key`` when given)."""
        for call_id, call in self._calls.items():
            if call.kind is kind and (key is None or call.key == key):
                del self._calls[call_id]
                return call
        return None

    def reject_all(self, make_exc: Callable[[], BaseException]) -> int:
        calls = [call for call in self._calls.values() if not call.expired]
        self._calls.clear()
        for call in calls:
            call.reject(make_exc())
        return len(calls)

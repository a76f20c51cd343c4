"""Key-value protocol client: connection adapter, dispatcher and set/get API."""

from kvwire.client.client import KvClient, connect
from kvwire.client.connection import ConnectionState, KvConnection
from kvwire.client.dispatcher import CallDispatcher
from kvwire.client.events import ClientEvent, EventKind
from kvwire.client.pending import PendingCall, PendingCalls

__all__ = [
    "CallDispatcher",
    "ClientEvent",
    "ConnectionState",
    "EventKind",
    "KvClient",
    "KvConnection",
    "PendingCall",
    "PendingCalls",
    "connect",
]

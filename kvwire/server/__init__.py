"""Reference key-value server."""

from kvwire.server.server import KvServer
from kvwire.server.store import KeyValueStore, handle_request

__all__ = ["KeyValueStore", "KvServer", "handle_request"]

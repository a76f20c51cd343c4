#!/usr/bin/env python3
"""Run the reference key-value server.

Usage:
  python scripts/kv_server.py
  python scripts/kv_server.py --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger

from kvwire.config.loader import load_config
from kvwire.server import KvServer


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--config", type=Path, default=None, help="path to config.json")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="INFO", format="<dim>{time:HH:mm:ss}</dim> | <level>{message}</level>")

    server_cfg = load_config(args.config).server
    updates = {k: v for k, v in (("host", args.host), ("port", args.port)) if v is not None}
    if updates:
        server_cfg = server_cfg.model_copy(update=updates)

    try:
        asyncio.run(KvServer(server_cfg).serve_forever())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

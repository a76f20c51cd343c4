#!/usr/bin/env python3
"""Replay the basic set-then-get scenario against a key-value server.

Usage:
  python scripts/kv_demo.py
  python scripts/kv_demo.py --url ws://localhost:8080 --delay 2
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger

from kvwire.client import ClientEvent, KvClient
from kvwire.config.loader import load_config
from kvwire.utils.exceptions import KvWireError


def _log_event(event: ClientEvent) -> None:
    logger.info(f"event {event.kind.value}: {event.detail}")


async def run(url: str | None, config_path: Path | None, key: str, value: str, delay: float) -> int:
    cfg = load_config(config_path)
    try:
        async with KvClient(url, config=cfg.client, on_event=_log_event) as client:
            await client.set(key, value)
            logger.info("received set response")
            await asyncio.sleep(delay)
            res = await client.get(key)
            logger.info(f"received get response: {res.key} = {res.value}")
    except KvWireError as e:
        logger.error(f"Demo failed: {e}")
        return 1
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--url", default=None, help="server URL (default from config)")
    parser.add_argument("--config", type=Path, default=None, help="path to config.json")
    parser.add_argument("--key", default="name")
    parser.add_argument("--value", default="Franz Sinaga")
    parser.add_argument("--delay", type=float, default=2.0, help="seconds between set and get")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if args.verbose else "INFO",
        format="<dim>{time:HH:mm:ss.SSS}</dim> | <level>{level: <8}</level> | <level>{message}</level>",
    )
    return asyncio.run(run(args.url, args.config, args.key, args.value, args.delay))


if __name__ == "__main__":
    raise SystemExit(main())

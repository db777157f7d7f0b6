"""Protean Engine runner for the commerce domain.

Starts the Engine workers that process events asynchronously when the
production overlay is active:
- OutboxProcessor: polls the outbox table, publishes events to Redis Streams
- StreamSubscriptions: reads Redis Streams, invokes projectors and event handlers
  (ledger entries, stock levels, order lookup, restocking, notifications)

Usage:
    PROTEAN_ENV=production python src/server.py
    PROTEAN_ENV=production python src/server.py --test-mode
"""

import argparse
import asyncio

from protean.server.engine import Engine

from commerce.utils.logging import configure_logging


def _get_domain():
    """Import and initialize the commerce domain."""
    from commerce.domain import commerce

    commerce.init()
    return commerce


async def run(test_mode=False):
    domain = _get_domain()
    engine = Engine(domain, test_mode=test_mode)
    await engine.run()


def main():
    parser = argparse.ArgumentParser(description="ShopLedger Engine runner")
    parser.add_argument(
        "--test-mode",
        action="store_true",
        help="Process pending messages once and exit",
    )
    args = parser.parse_args()

    configure_logging()
    asyncio.run(run(test_mode=args.test_mode))


if __name__ == "__main__":
    main()

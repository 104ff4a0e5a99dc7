"""Standalone delivery worker process

Run any number of these next to the API (with DELIVERY_WORKER_ENABLED=false on the
API) to scale delivery independently of request handling.
"""
import asyncio
import logging

from mailroom.core.logging import setup_logging
from mailroom.core.otel import initialize_otel, instrument_clients
from mailroom.db.session import engine
from mailroom.tasks.delivery_worker import run_worker_until_stopped

logger = logging.getLogger(__name__)


def main():
    setup_logging()
    if initialize_otel(component="worker"):
        instrument_clients(engine)

    try:
        asyncio.run(run_worker_until_stopped())
    except KeyboardInterrupt:
        logger.info("Delivery worker stopped")


if __name__ == "__main__":
    main()

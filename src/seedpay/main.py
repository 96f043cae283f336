from __future__ import annotations

import asyncio
import logging
import os
import sys

import uvicorn

from .crypto.seed_vault import generate_mnemonic
from .envs.engine_env import get_settings

# uvloop only ships for POSIX platforms
if sys.platform != "win32":
    import uvloop

    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())


def _setup_prometheus_multiproc_dir() -> None:
    """Prepare the Prometheus multiprocess directory before Uvicorn forks workers."""
    prom_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if not prom_dir:
        return

    os.makedirs(prom_dir, exist_ok=True)
    for filename in os.listdir(prom_dir):
        file_path = os.path.join(prom_dir, filename)
        if os.path.isfile(file_path):
            os.remove(file_path)


def main() -> None:
    """Main entry point for the payment engine API."""

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"Starting {settings.app_name} v{settings.app_version}")
    print(f"Network: {settings.network.value} ({settings.address_kind.value})")
    print(f"API will be available at: http://{settings.api_host}:{settings.api_port}")
    print(f"API Documentation: http://{settings.api_host}:{settings.api_port}/docs")
    if not settings.indexer_base_url:
        print("No SEEDPAY_INDEXER_BASE_URL set; chain polling disabled.")

    # Reload requires a single worker.
    reload = settings.api_debug
    workers = 1 if reload else settings.api_workers

    _setup_prometheus_multiproc_dir()

    uvicorn.run(
        "seedpay.api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=reload,
        workers=workers,
        log_level=settings.log_level.lower(),
    )


def generate_mnemonic_main() -> None:
    """Print a fresh BIP39 mnemonic for SEEDPAY_MNEMONIC. Store it offline."""
    bits = int(sys.argv[1]) if len(sys.argv) > 1 else 256
    print(generate_mnemonic(bits))


if __name__ == "__main__":
    main()

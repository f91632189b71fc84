"""Entry point for the CityGuard API server.

Host and port are read from the ``HOST`` and ``PORT`` environment
variables (defaults ``0.0.0.0`` and ``8000``); everything else comes
from the settings in ``cityguard_api.app.core.config``.

Usage:
    python run.py
"""
import asyncio
import logging
import os

from uvicorn import Config, Server


async def run_api() -> None:
    """Serve the API with Uvicorn until interrupted."""
    from cityguard_api.app.core.config import settings
    from cityguard_api.app.main import app

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    config = Config(app=app, host=host, port=port, reload=False, log_level=settings.log_level.lower())
    server = Server(config)
    await server.serve()


def main() -> None:
    try:
        asyncio.run(run_api())
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Server stopped")


if __name__ == "__main__":
    main()

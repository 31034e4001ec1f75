"""
Run the FlowClient API with uvicorn.

Usage:
    python -m flowclient_api

uvicorn turns SIGINT/SIGTERM into a lifespan shutdown, which stops the
reaper and clears the registry before the process exits.
"""

import logging

import uvicorn

from flowclient_api.config import Settings
from flowclient_api.transport.app import create_app


def main() -> None:
    settings = Settings.from_env()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

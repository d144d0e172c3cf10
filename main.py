"""
Sommelier tool dispatch entry point.

Serves the tool-call HTTP endpoint the dialogue engine posts to, or runs
the offline console demo for development.

Usage:
    HTTP service: python main.py serve
    Console mode: python main.py console [--scenario shopping]
"""

import logging
import sys

from sommelier.config import settings

logger = logging.getLogger(__name__)


def _run_server() -> None:
    """Start the FastAPI app under uvicorn."""
    import uvicorn

    from sommelier.api import create_app

    logger.info("Starting %s on %s:%d", settings.service_name, settings.host, settings.port)
    uvicorn.run(
        create_app(),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


def _run_console_mode(argv: list[str]) -> None:
    """Start the offline console demo (no credentials required)."""
    from console_demo import main as console_main

    console_main(argv)


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode(sys.argv[2:])
    else:
        _run_server()

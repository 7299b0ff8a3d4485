"""Main entry point for the WebSub subscriber service."""

import signal
import sys

import structlog
import uvicorn

from websub.subscriptions.config import load_subscriber_settings

logger = structlog.get_logger("websub")


def signal_handler(signum: int, frame) -> None:
    """Exit cleanly on SIGINT or SIGTERM."""
    logger.info("Received shutdown signal", signal=signal.Signals(signum).name)
    sys.exit(0)


def main() -> None:
    """Run the subscriber service with uvicorn."""
    settings = load_subscriber_settings()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info(
        "Launching subscriber server",
        host=settings.host or None,
        path_prefix=settings.path_prefix or "/",
        debug=settings.debug
    )
    uvicorn.run(
        "websub.app:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    main()

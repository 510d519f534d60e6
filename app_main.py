"""Application entry point for the QuizLive server."""

from __future__ import annotations

import socket

from quizlive.config import get_settings
from quizlive.constants.about import APP_NAME, APP_VERSION
from quizlive.core.quiz_manager import QuizManager
from quizlive.server.api_server import start_api_server
from quizlive.storage import create_store
from quizlive.utils.logging_config import configure_logging


def _determine_public_url(port: int) -> str:
    """Best-effort determination of the local IP for the browser-facing URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def main() -> None:
    """Initialize logging, open the configured store and serve the API until stopped."""
    settings = get_settings()
    logger = configure_logging(settings.log_level)
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    store = create_store(settings.storage_backend, settings.database_url, echo=settings.sql_echo)
    logger.info("Using the %s store", store.backend_name)
    quiz_manager = QuizManager(store)

    server_thread = start_api_server(
        quiz_manager=quiz_manager,
        host=settings.host,
        port=settings.port,
        leaderboard_limit=settings.leaderboard_limit,
        log_level=settings.log_level,
    )
    logger.info("API available at %s", _determine_public_url(settings.port))
    try:
        server_thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        store.close()


if __name__ == "__main__":
    main()

"""Application entry point for the QuizDeck Live host console."""

from __future__ import annotations

import argparse
from pathlib import Path
import socket
import sys

from PySide6.QtWidgets import QApplication

from quizdeck.constants.about import APP_NAME
from quizdeck.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quizdeck.core.services.host_session import HostSessionController
from quizdeck.server.api_server import start_api_server
from quizdeck.store.shared_store import SharedSessionStore
from quizdeck.ui.host_main_window import HostMainWindow
from quizdeck.utils.logging_config import configure_logging


def _determine_student_url(port: int) -> str:
    """Best-effort determination of the local IP for student-facing URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"{APP_NAME} host console")
    parser.add_argument("--host", default=DEFAULT_HOST, help="Interface for the student API server.")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port for the student API server.")
    parser.add_argument("--deck", type=Path, default=None, help="Deck file to load on startup.")
    return parser.parse_known_args(argv)[0]


def main() -> None:
    """Initialize logging, start the API server, and launch the Qt UI."""
    args = _parse_args(sys.argv[1:])
    logger = configure_logging()
    logger.info("Starting %s host…", APP_NAME)

    store = SharedSessionStore()
    controller = HostSessionController(store)
    start_api_server(store=store, host=args.host, port=args.port)
    student_url = _determine_student_url(args.port)
    logger.info("Students connect with: python student_main.py --server %s", student_url)

    app = QApplication(sys.argv)
    window = HostMainWindow(controller=controller, student_url=student_url, deck_path=args.deck)
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()

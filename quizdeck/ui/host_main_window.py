"""Qt main window for the host: load a deck, run a session, end it."""

from __future__ import annotations

from enum import Enum, auto
import logging
from pathlib import Path

from PySide6.QtCore import QTimer
from PySide6.QtWidgets import (
    QFileDialog,
    QHBoxLayout,
    QMainWindow,
    QPushButton,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

from quizdeck.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION, HELP_TEXT
from quizdeck.constants.ui_constants import (
    IMPORT_DIALOG_TITLE,
    IMPORT_FILE_FILTER,
    MODE_BUTTON_IMPORT,
    MODE_BUTTON_START,
    MODE_BUTTON_STOP,
    NO_DECK_LOADED_MESSAGE,
    ROSTER_REFRESH_INTERVAL_MS,
    SESSION_ENDED_MESSAGE,
    STUDENT_URL_PLACEHOLDER,
    WINDOW_TITLE,
)
from quizdeck.core.deck_importer import DeckImportError, load_deck_from_file
from quizdeck.core.services.host_session import HostSessionController
from quizdeck.styling.styles import Styles
from quizdeck.ui.components.live_panel import LivePanel
from quizdeck.ui.components.setup_panel import SetupPanel
from quizdeck.ui.dialog_helpers import (
    confirm_end_session,
    confirm_replace_deck,
    show_error,
    show_info,
    show_warning,
)

logger = logging.getLogger(__name__)


class HostMode(Enum):
    """High-level UI mode for the host console."""

    SETUP = auto()
    LIVE = auto()


class HostMainWindow(QMainWindow):
    """Main Qt window switching between deck setup and the live session."""

    def __init__(
        self,
        controller: HostSessionController,
        student_url: str | None = None,
        deck_path: Path | None = None,
    ) -> None:
        super().__init__()
        self.setWindowTitle(WINDOW_TITLE)
        self.controller = controller
        self.student_url = student_url or STUDENT_URL_PLACEHOLDER
        self._mode = HostMode.SETUP

        self._build_ui()
        self._configure_refresh_timer()
        self.setStyleSheet(Styles.get_main_window_style())
        if deck_path is not None:
            self._load_deck(deck_path)

    def _build_ui(self) -> None:
        central_widget = QWidget(self)
        self.setCentralWidget(central_widget)
        root_layout = QVBoxLayout()
        central_widget.setLayout(root_layout)

        button_row = QHBoxLayout()
        self.import_button = QPushButton(MODE_BUTTON_IMPORT, self)
        self.import_button.clicked.connect(self._handle_import_deck)
        button_row.addWidget(self.import_button)

        self.session_button = QPushButton(MODE_BUTTON_START, self)
        self.session_button.setCheckable(True)
        self.session_button.clicked.connect(self._handle_session_button)
        button_row.addWidget(self.session_button)

        self.about_button = QPushButton(f"About {APP_NAME}", self)
        self.about_button.clicked.connect(self._handle_about)
        button_row.addWidget(self.about_button)

        self.help_button = QPushButton("Help", self)
        self.help_button.clicked.connect(lambda: show_info(self, f"{APP_NAME} Help", HELP_TEXT))
        button_row.addWidget(self.help_button)
        root_layout.addLayout(button_row)

        self.mode_stack = QStackedWidget(self)
        self.setup_panel = SetupPanel(on_start=self._start_session, parent=self)
        self.live_panel = LivePanel(self.controller, self.student_url, parent=self)
        self.mode_stack.addWidget(self.setup_panel)
        self.mode_stack.addWidget(self.live_panel)
        root_layout.addWidget(self.mode_stack)
        self._set_mode(HostMode.SETUP)

    def _configure_refresh_timer(self) -> None:
        self.refresh_timer = QTimer(self)
        self.refresh_timer.setInterval(ROSTER_REFRESH_INTERVAL_MS)
        self.refresh_timer.timeout.connect(self._refresh_state)
        self.refresh_timer.start()

    def _refresh_state(self) -> None:
        if self._mode == HostMode.LIVE:
            self.live_panel.refresh()

    def _set_mode(self, mode: HostMode) -> None:
        self._mode = mode
        live = mode == HostMode.LIVE
        self.session_button.setChecked(live and not self.controller.is_ended)
        self.session_button.setText(MODE_BUTTON_STOP if live and not self.controller.is_ended else MODE_BUTTON_START)
        self.import_button.setEnabled(not live or self.controller.is_ended)
        self.mode_stack.setCurrentIndex(1 if live else 0)

    def _handle_session_button(self) -> None:
        if self._mode == HostMode.LIVE and not self.controller.is_ended:
            if not confirm_end_session(self):
                self.session_button.setChecked(True)
                return
            self.controller.end_session()
            self.live_panel.stop()
            self._set_mode(HostMode.LIVE)
            show_info(self, "Session ended", SESSION_ENDED_MESSAGE)
            return
        self._start_session()

    def _start_session(self) -> None:
        deck = self.setup_panel.deck
        if deck is None or deck.slide_count == 0:
            show_warning(self, "No deck", NO_DECK_LOADED_MESSAGE)
            self.session_button.setChecked(False)
            return
        session_id, code = self.controller.start_session(
            deck,
            teacher_name=self.setup_panel.teacher_name(),
            immediate_feedback=self.setup_panel.immediate_feedback(),
            locked=self.setup_panel.start_locked(),
        )
        logger.info("Session %s is live; join code %s", session_id, code)
        self.live_panel.start()
        self._set_mode(HostMode.LIVE)

    def _handle_import_deck(self) -> None:
        if self.setup_panel.deck is not None and not confirm_replace_deck(self):
            return
        file_path, _ = QFileDialog.getOpenFileName(self, IMPORT_DIALOG_TITLE, str(Path.home()), IMPORT_FILE_FILTER)
        if file_path:
            self._load_deck(Path(file_path))

    def _load_deck(self, path: Path) -> None:
        try:
            imported = load_deck_from_file(path)
        except (OSError, DeckImportError) as exc:
            show_error(self, "Import failed", str(exc))
            return
        self.setup_panel.set_deck(imported.deck)
        self._set_mode(HostMode.SETUP)
        logger.info("Loaded deck %s with %d slides", path, imported.deck.slide_count)

    def _handle_about(self) -> None:
        details = f"{APP_NAME} v{APP_VERSION}\nLicense: {APP_LICENSE}\n\n{APP_ABOUT_TEXT}"
        show_info(self, f"About {APP_NAME}", details)

    def closeEvent(self, event) -> None:  # noqa: N802 - Qt override
        if self.controller.has_session() and not self.controller.is_ended:
            self.controller.end_session()
        super().closeEvent(event)

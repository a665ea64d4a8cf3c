"""Component for driving a running session: slide pointer, flags and roster."""

from __future__ import annotations

from PySide6.QtCore import Qt
from PySide6.QtGui import QColor
from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWidgets import (
    QCheckBox,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from quizdeck.constants.ui_constants import (
    LIVE_EVALUATE_BUTTON,
    LIVE_FEEDBACK_TOGGLE,
    LIVE_LOCK_TOGGLE,
    LIVE_NEXT_BUTTON,
    LIVE_PAUSE_TOGGLE,
    LIVE_PREV_BUTTON,
    LIVE_RESULTS_TOGGLE,
    LIVE_ROSTER_HEADERS,
)
from quizdeck.core.errors import SessionEndedError
from quizdeck.core.services.host_session import HostSessionController
from quizdeck.core.services.roster import RosterBuilder
from quizdeck.core.slide_renderer import renderer
from quizdeck.styling.styles import Styles
from quizdeck.ui.dialog_helpers import show_info, show_warning


class LivePanel(QWidget):
    """UI component for running a live session."""

    def __init__(
        self,
        controller: HostSessionController,
        student_url: str,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self.controller = controller
        self.student_url = student_url
        self._roster_builder = RosterBuilder()
        self._shown_slide: tuple[str, int] | None = None
        self._build_ui()

    def _build_ui(self) -> None:
        layout = QVBoxLayout()
        self.setLayout(layout)

        header = QHBoxLayout()
        self.code_label = QLabel("------", self)
        self.code_label.setStyleSheet(Styles.get_join_code_style())
        header.addWidget(self.code_label)
        self.network_label = QLabel(f"Students connect to: {self.student_url}", self)
        self.network_label.setWordWrap(True)
        self.network_label.setStyleSheet(Styles.get_large_label_style())
        header.addWidget(self.network_label, stretch=1)
        layout.addLayout(header)

        flags_row = QHBoxLayout()
        self.lock_checkbox = QCheckBox(LIVE_LOCK_TOGGLE, self)
        self.lock_checkbox.toggled.connect(lambda checked: self._apply(self.controller.set_locked, checked))
        flags_row.addWidget(self.lock_checkbox)
        self.pause_checkbox = QCheckBox(LIVE_PAUSE_TOGGLE, self)
        self.pause_checkbox.toggled.connect(lambda checked: self._apply(self.controller.set_paused, checked))
        flags_row.addWidget(self.pause_checkbox)
        self.feedback_checkbox = QCheckBox(LIVE_FEEDBACK_TOGGLE, self)
        self.feedback_checkbox.toggled.connect(
            lambda checked: self._apply(self.controller.set_immediate_feedback, checked)
        )
        flags_row.addWidget(self.feedback_checkbox)
        self.results_checkbox = QCheckBox(LIVE_RESULTS_TOGGLE, self)
        self.results_checkbox.toggled.connect(
            lambda checked: self._apply(self.controller.set_show_results, checked)
        )
        flags_row.addWidget(self.results_checkbox)
        flags_row.addStretch()
        layout.addLayout(flags_row)

        body = QHBoxLayout()
        self.preview_view = QWebEngineView(self)
        body.addWidget(self.preview_view, stretch=3)

        roster_group = QGroupBox("Students", self)
        roster_layout = QVBoxLayout()
        roster_group.setLayout(roster_layout)
        self.roster_table = QTableWidget(0, len(LIVE_ROSTER_HEADERS), self)
        self.roster_table.setHorizontalHeaderLabels(list(LIVE_ROSTER_HEADERS))
        self.roster_table.verticalHeader().setVisible(False)
        self.roster_table.setEditTriggers(QTableWidget.NoEditTriggers)
        roster_layout.addWidget(self.roster_table)
        self.answered_label = QLabel("", self)
        self.answered_label.setStyleSheet(Styles.get_muted_label_style())
        roster_layout.addWidget(self.answered_label)
        body.addWidget(roster_group, stretch=2)
        layout.addLayout(body, stretch=1)

        nav_row = QHBoxLayout()
        self.prev_button = QPushButton(LIVE_PREV_BUTTON, self)
        self.prev_button.clicked.connect(lambda: self._apply(self.controller.previous_slide))
        nav_row.addWidget(self.prev_button)
        self.slide_label = QLabel("", self)
        self.slide_label.setAlignment(Qt.AlignCenter)
        nav_row.addWidget(self.slide_label, stretch=1)
        self.evaluate_button = QPushButton(LIVE_EVALUATE_BUTTON, self)
        self.evaluate_button.clicked.connect(self._handle_evaluate)
        nav_row.addWidget(self.evaluate_button)
        self.next_button = QPushButton(LIVE_NEXT_BUTTON, self)
        self.next_button.clicked.connect(lambda: self._apply(self.controller.next_slide))
        nav_row.addWidget(self.next_button)
        layout.addLayout(nav_row)

    def start(self) -> None:
        """Sync widgets with the freshly started session."""
        record = self.controller.snapshot()
        if record is None:
            return
        self.code_label.setText(self.controller.join_code or "------")
        for checkbox, value in (
            (self.lock_checkbox, record.is_locked),
            (self.pause_checkbox, record.is_paused),
            (self.feedback_checkbox, record.settings.immediate_feedback),
            (self.results_checkbox, record.show_results),
        ):
            checkbox.blockSignals(True)
            checkbox.setChecked(value)
            checkbox.blockSignals(False)
        self._shown_slide = None
        self._set_controls_enabled(True)
        self.refresh()

    def stop(self) -> None:
        self._set_controls_enabled(False)
        self.refresh()

    def refresh(self) -> None:
        record = self.controller.snapshot()
        if record is None:
            return
        index = record.current_slide_index
        slide = record.quiz.slide_at(index) if record.quiz else None
        self.slide_label.setText(f"Slide {index + 1} of {record.slide_count}")
        if slide is not None and self._shown_slide != (record.id, index):
            self.preview_view.setHtml(renderer.render_slide(slide, title=record.quiz.title))
            self._shown_slide = (record.id, index)
        if slide is not None:
            answered = self._roster_builder.answered_count(record, slide.id)
            self.answered_label.setText(f"Answers on this slide: {answered} of {len(record.students)}")
        self._fill_roster(self._roster_builder.build(record))

    def update_student_url(self, url: str) -> None:
        self.student_url = url
        self.network_label.setText(f"Students connect to: {url}")

    def _fill_roster(self, rows) -> None:
        self.roster_table.setRowCount(len(rows))
        for row_index, row in enumerate(rows):
            status = "online" if row.is_online else "offline"
            if row.is_online and not row.is_focused:
                status = "away"
            values = (
                row.display_name,
                status,
                str(row.current_slide_index + 1),
                str(row.answered),
                str(row.correct),
                str(row.wrong),
                str(row.pending),
            )
            for column, value in enumerate(values):
                item = QTableWidgetItem(value)
                if column == 1:
                    item.setForeground(QColor(Styles.presence_color(row.is_online)))
                self.roster_table.setItem(row_index, column, item)

    def _handle_evaluate(self) -> None:
        graded = self._apply(self.controller.evaluate_slide)
        if graded is not None:
            show_info(self, "Evaluation", f"Evaluated {graded} answer(s) on this slide.")

    def _apply(self, action, *args):
        try:
            result = action(*args)
        except SessionEndedError as exc:
            show_warning(self, "Session ended", exc.user_message)
            self._set_controls_enabled(False)
            return None
        except IndexError as exc:
            show_warning(self, "Slide", str(exc))
            return None
        self.refresh()
        return result

    def _set_controls_enabled(self, enabled: bool) -> None:
        for widget in (
            self.prev_button,
            self.next_button,
            self.evaluate_button,
            self.lock_checkbox,
            self.pause_checkbox,
            self.feedback_checkbox,
            self.results_checkbox,
        ):
            widget.setEnabled(enabled)

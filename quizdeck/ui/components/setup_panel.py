"""Component for reviewing the loaded deck and choosing session options."""

from __future__ import annotations

from PySide6.QtWidgets import (
    QCheckBox,
    QFormLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from quizdeck.constants.ui_constants import (
    MODE_BUTTON_START,
    SETUP_EMPTY_STATE,
    SETUP_IMMEDIATE_FEEDBACK,
    SETUP_START_LOCKED,
    SETUP_TEACHER_NAME_LABEL,
)
from quizdeck.core.models import ChoiceSlide, InfoSlide, OpenSlide, SlideDeck
from quizdeck.styling.styles import Styles


def _describe_slide(number: int, slide) -> str:
    if isinstance(slide, InfoSlide):
        return f"{number}. Info: {slide.title or slide.content[:40]}"
    if isinstance(slide, ChoiceSlide):
        return f"{number}. Choice ({len(slide.options)} options): {slide.prompt[:60]}"
    if isinstance(slide, OpenSlide):
        return f"{number}. Open answer: {slide.prompt[:60]}"
    return f"{number}. {slide.activity_type}: {getattr(slide, 'prompt', '')[:60]}"


class SetupPanel(QWidget):
    """UI component shown before a session starts."""

    def __init__(self, on_start: callable, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.on_start = on_start
        self._deck: SlideDeck | None = None
        self._build_ui()

    def _build_ui(self) -> None:
        layout = QVBoxLayout()
        self.setLayout(layout)

        self.title_label = QLabel(SETUP_EMPTY_STATE, self)
        self.title_label.setStyleSheet(Styles.get_large_label_style())
        layout.addWidget(self.title_label)

        self.slide_list = QListWidget(self)
        self.slide_list.setAlternatingRowColors(True)
        layout.addWidget(self.slide_list, stretch=1)

        form = QFormLayout()
        self.teacher_name_edit = QLineEdit(self)
        form.addRow(SETUP_TEACHER_NAME_LABEL, self.teacher_name_edit)
        layout.addLayout(form)

        self.feedback_checkbox = QCheckBox(SETUP_IMMEDIATE_FEEDBACK, self)
        layout.addWidget(self.feedback_checkbox)

        self.locked_checkbox = QCheckBox(SETUP_START_LOCKED, self)
        self.locked_checkbox.setChecked(True)
        layout.addWidget(self.locked_checkbox)

        self.start_button = QPushButton(MODE_BUTTON_START, self)
        self.start_button.setEnabled(False)
        self.start_button.clicked.connect(lambda: self.on_start())
        layout.addWidget(self.start_button)

    def set_deck(self, deck: SlideDeck | None) -> None:
        self._deck = deck
        self.slide_list.clear()
        if deck is None:
            self.title_label.setText(SETUP_EMPTY_STATE)
            self.start_button.setEnabled(False)
            return
        self.title_label.setText(f"{deck.title} ({deck.slide_count} slides)")
        for number, slide in enumerate(deck.slides, start=1):
            QListWidgetItem(_describe_slide(number, slide), self.slide_list)
        self.start_button.setEnabled(deck.slide_count > 0)

    @property
    def deck(self) -> SlideDeck | None:
        return self._deck

    def teacher_name(self) -> str:
        return self.teacher_name_edit.text().strip()

    def immediate_feedback(self) -> bool:
        return self.feedback_checkbox.isChecked()

    def start_locked(self) -> bool:
        return self.locked_checkbox.isChecked()

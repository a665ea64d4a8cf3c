"""Helper functions for common dialog patterns in the host UI."""

from __future__ import annotations

from PySide6.QtWidgets import QMessageBox, QWidget


def confirm_end_session(parent: QWidget) -> bool:
    """Ask before ending the live session; ending cannot be undone."""
    reply = QMessageBox.question(
        parent,
        "End Session",
        "End the session for all students? This cannot be undone.",
        QMessageBox.Yes | QMessageBox.No,
        QMessageBox.No,
    )
    return reply == QMessageBox.Yes


def confirm_replace_deck(parent: QWidget) -> bool:
    reply = QMessageBox.question(
        parent,
        "Replace Deck",
        "Loading a deck will replace the current one. Continue?",
        QMessageBox.Yes | QMessageBox.No,
        QMessageBox.No,
    )
    return reply == QMessageBox.Yes


def show_error(parent: QWidget, title: str, message: str) -> None:
    QMessageBox.critical(parent, title, message)


def show_info(parent: QWidget, title: str, message: str) -> None:
    """Show information dialog.

    Args:
        parent: Parent widget for the dialog
        title: Dialog title
        message: Information message
    """
    QMessageBox.information(parent, title, message)


def show_warning(parent: QWidget, title: str, message: str) -> None:
    QMessageBox.warning(parent, title, message)

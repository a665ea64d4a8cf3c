"""Qt UI components for the host console."""

from .dialog_helpers import (
    confirm_end_session,
    confirm_replace_deck,
    show_error,
    show_info,
    show_warning,
)
from .host_main_window import HostMainWindow

__all__ = [
    "HostMainWindow",
    "confirm_end_session",
    "confirm_replace_deck",
    "show_error",
    "show_info",
    "show_warning",
]

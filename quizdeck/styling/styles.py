"""Centralized styles for the host console."""

_BACKGROUND = "#f8fafc"
_SURFACE = "#ffffff"
_TEXT = "#0f172a"
_MUTED = "#64748b"
_BORDER = "#cbd5e1"
_ACCENT = "#1f9aa5"
_ACCENT_TEXT = "#ffffff"
_ONLINE = "#16a34a"
_OFFLINE = "#94a3b8"


class Styles:
    """Qt stylesheet snippets for the host console."""

    @staticmethod
    def get_main_window_style() -> str:
        return f"""
            QMainWindow, QWidget {{
                background-color: {_BACKGROUND};
                color: {_TEXT};
                font-family: 'Segoe UI', 'Roboto', sans-serif;
                font-size: 14px;
            }}
            QPushButton {{
                background-color: {_SURFACE};
                border: 1px solid {_BORDER};
                border-radius: 4px;
                padding: 6px 12px;
            }}
            QPushButton:checked {{
                background-color: {_ACCENT};
                color: {_ACCENT_TEXT};
                border: 1px solid {_ACCENT};
            }}
            QLineEdit, QListWidget, QTableWidget {{
                background-color: {_SURFACE};
                border: 1px solid {_BORDER};
                border-radius: 4px;
            }}
            QGroupBox {{
                border: 1px solid {_BORDER};
                border-radius: 6px;
                margin-top: 6px;
                padding-top: 10px;
            }}
        """

    @staticmethod
    def get_join_code_style() -> str:
        return f"font-size: 32pt; font-weight: bold; letter-spacing: 6px; color: {_ACCENT};"

    @staticmethod
    def get_large_label_style() -> str:
        return "font-size: 16pt; font-weight: bold;"

    @staticmethod
    def get_muted_label_style() -> str:
        return f"color: {_MUTED};"

    @staticmethod
    def presence_color(is_online: bool) -> str:
        return _ONLINE if is_online else _OFFLINE

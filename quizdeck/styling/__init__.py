"""Styling module for the QuizDeck host console."""

from .styles import Styles

__all__ = ["Styles"]

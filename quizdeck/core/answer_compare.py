"""Tolerant comparison of typed answers against expected answers.

Accepts formatting differences that do not change the value: inline math
markers, whitespace, decimal commas, empty LaTeX groups and equivalent
numeric forms (``0.5``, ``1/2``, ``\\frac{1}{2}``, ``3 1/2``).
"""

from __future__ import annotations

import re

_TOLERANCE = 1e-6

_LATEX_FRACTION = re.compile(r"^(-?\d+)?\\frac\{(-?\d+(?:\.\d+)?)\}\{(-?\d+(?:\.\d+)?)\}$")
_SIMPLE_FRACTION = re.compile(r"^(-?\d+(?:\.\d+)?)/(-?\d+(?:\.\d+)?)$")
_MIXED_NUMBER = re.compile(r"^(-?\d+)\s+(\d+(?:\.\d+)?)/(\d+(?:\.\d+)?)$")
_PLAIN_NUMBER = re.compile(r"^-?\d+(?:\.\d+)?$")


def normalize_answer(answer: str) -> str:
    if not answer:
        return ""
    text = str(answer).strip()
    text = text.replace("$$", "").replace("$", "")
    text = re.sub(r"\s+", "", text)
    text = text.replace(",", ".").replace("{}", "")
    text = re.sub(r"\.+$", "", text)
    return text.lower()


def _with_whole(whole: int, numerator: float, denominator: float) -> float | None:
    if denominator == 0:
        return None
    fraction = numerator / denominator
    return whole + fraction if whole >= 0 else whole - fraction


def parse_number(text: str) -> float | None:
    """Parse ``text`` as a number, or return ``None`` when it is not one."""
    normalized = normalize_answer(text)
    if not normalized:
        return None

    match = _LATEX_FRACTION.match(normalized)
    if match:
        whole = int(match.group(1)) if match.group(1) else 0
        return _with_whole(whole, float(match.group(2)), float(match.group(3)))

    # Mixed numbers need the space that normalization removes.
    match = _MIXED_NUMBER.match(str(text).replace("$", "").strip().replace(",", "."))
    if match:
        return _with_whole(int(match.group(1)), float(match.group(2)), float(match.group(3)))

    match = _SIMPLE_FRACTION.match(normalized)
    if match:
        denominator = float(match.group(2))
        if denominator == 0:
            return None
        return float(match.group(1)) / denominator

    if _PLAIN_NUMBER.match(normalized):
        return float(normalized)
    return None


def compare_math_answers(user_answer: str, correct_answer: str) -> bool:
    if user_answer is None or correct_answer is None:
        return False
    if normalize_answer(user_answer) == normalize_answer(correct_answer):
        return True
    user_value = parse_number(user_answer)
    correct_value = parse_number(correct_answer)
    if user_value is None or correct_value is None:
        return False
    return abs(user_value - correct_value) < _TOLERANCE


def check_math_answer(user_answer: str, correct_answers: list[str]) -> bool:
    """Return True when ``user_answer`` matches any non-empty expected answer."""
    if user_answer is None or not correct_answers:
        return False
    candidates = [answer for answer in correct_answers if answer and answer.strip()]
    return any(compare_math_answers(user_answer, candidate) for candidate in candidates)

"""Static metadata describing QuizDeck Live."""

APP_NAME = "QuizDeck Live"
APP_VERSION = "0.2"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "QuizDeck Live runs a shared slide deck from the teacher's computer. "
    "Students join with a six-character code, follow the teacher's slide or "
    "navigate on their own, and keep their answers across reloads, network "
    "drops and device switches."
)

HELP_TEXT = (
    "Load a deck (.txt or .json), then press Start Session. Share the join code.\n\n"
    "Text deck format, blocks separated by blank lines or '---':\n\n"
    "TITLE: Fractions warm-up\n\n"
    "INFO: Today we compare fractions.\n\n"
    "Q: Which is larger?\n"
    "A: $\\frac{1}{2}$\nB: $\\frac{1}{3}$\n"
    "CORRECT: A\n\n"
    "Q: Write $\\frac{3}{4}$ as a decimal.\n"
    "ANSWER: 0.75 | 0,75"
)

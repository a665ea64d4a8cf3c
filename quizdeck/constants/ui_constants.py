"""Qt UI constants used across widgets."""

WINDOW_TITLE: str = "QuizDeck Live Host Console"
STUDENT_URL_PLACEHOLDER: str = "http://<teacher-ip>:8000/"
ROSTER_REFRESH_INTERVAL_MS: int = 1000

MODE_BUTTON_IMPORT: str = "Load Deck"
MODE_BUTTON_START: str = "Start Session"
MODE_BUTTON_STOP: str = "End Session"

SETUP_TEACHER_NAME_LABEL: str = "Teacher name"
SETUP_IMMEDIATE_FEEDBACK: str = "Show students if their answer is correct right away"
SETUP_START_LOCKED: str = "Students follow my slide"
SETUP_EMPTY_STATE: str = "No deck loaded."

LIVE_PREV_BUTTON: str = "Previous Slide"
LIVE_NEXT_BUTTON: str = "Next Slide"
LIVE_LOCK_TOGGLE: str = "Students follow my slide"
LIVE_PAUSE_TOGGLE: str = "Pause"
LIVE_FEEDBACK_TOGGLE: str = "Immediate feedback"
LIVE_RESULTS_TOGGLE: str = "Show results"
LIVE_EVALUATE_BUTTON: str = "Evaluate Slide"
LIVE_ROSTER_HEADERS: tuple[str, ...] = ("Student", "Status", "Slide", "Answered", "Correct", "Wrong", "Pending")

IMPORT_DIALOG_TITLE: str = "Select deck file"
IMPORT_FILE_FILTER: str = "Deck files (*.txt *.json);;All files (*.*)"

NO_DECK_LOADED_MESSAGE: str = "Please load a deck first."
SESSION_ENDED_MESSAGE: str = "The session has ended. Students now see their results."

"""Constants shared by the live-session synchronization protocol."""

SESSIONS_PATH: str = "quiz_sessions"
SESSION_CODES_PATH: str = "session_codes"

JOIN_CODE_LENGTH: int = 6
JOIN_CODE_ALPHABET: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

HEARTBEAT_INTERVAL_SECONDS: float = 45.0
RETRY_MAX_ATTEMPTS: int = 3
RETRY_BASE_DELAY_SECONDS: float = 1.0
POLL_INTERVAL_SECONDS: float = 2.0

SLIDE_TRANSITION_SECONDS: float = 0.3
WIGGLE_SECONDS: float = 0.8

IDENTITY_FILE_NAME: str = "student-identity.json"
SESSION_POINTER_FILE_NAME: str = "student-session.json"
DEVICE_ID_FILE_NAME: str = "device-id"

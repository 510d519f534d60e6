"""Quiz-related constants shared across the core and server layers."""

OPTION_COUNT: int = 4
OPTION_LETTERS: tuple[str, ...] = ("A", "B", "C", "D")

DEFAULT_TIME_LIMIT_SECONDS: int = 30
MIN_TIME_LIMIT_SECONDS: int = 5
MAX_TIME_LIMIT_SECONDS: int = 300
DEFAULT_QUESTION_POINTS: int = 1

# Selected option index stored when the countdown ran out before an answer.
TIMEOUT_OPTION_INDEX: int = -1

JOIN_CODE_LENGTH: int = 6
JOIN_CODE_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

SESSION_LEADERBOARD_LIMIT: int = 10
GLOBAL_LEADERBOARD_LIMIT: int = 100

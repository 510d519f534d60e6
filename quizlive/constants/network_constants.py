"""Network configuration constants for the quiz platform."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
POLL_INTERVAL_SECONDS: int = 2

USER_ID_HEADER: str = "X-User-Id"
USER_ROLE_HEADER: str = "X-User-Role"
USER_EMAIL_HEADER: str = "X-User-Email"
USER_NAME_HEADER: str = "X-User-Name"

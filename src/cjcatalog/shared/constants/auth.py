"""
Token Lifecycle Constants

The authentication endpoint accepts one call per five minutes, so tokens
are refreshed well ahead of expiry and a stale token is preferred over
spending the auth budget twice.
"""

from .system import BASE_HOUR, BASE_MINUTE


class TokenConfig:
    """Token lifecycle configuration constants."""

    AUTH_CALL_INTERVAL = 5 * BASE_MINUTE
    REFRESH_BUFFER = BASE_HOUR
    STALE_TOKEN_GRACE = 15 * BASE_MINUTE

    # Token store
    RECORD_KEY = "cj_access_token"  # noqa: S105  # nosec B105
    DEFAULT_SQLITE_PATH = ".cjcatalog/tokens.db"
    DEFAULT_FILE_PATH = ".cj-token.json"
    BACKEND_MEMORY = "memory"
    BACKEND_SQLITE = "sqlite"
    BACKEND_FILE = "file"

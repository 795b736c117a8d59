"""cjcatalog Shared Module.

This package contains shared utilities, constants and error handling used across cjcatalog.
"""

__all__ = ["clock", "constants", "errors", "logging", "permissions"]

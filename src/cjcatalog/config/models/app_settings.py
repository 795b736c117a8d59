"""Logging configuration model."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LoggingSettings(BaseModel):
    """Logging configuration.

    Applied by ``setup_structured_logger`` when the embedding application
    asks the package to configure its own logger.
    """

    level: str = Field(default="INFO", description="Logging level")
    file: str | None = Field(default=None, description="Optional JSON log file path")
    use_rich_console: bool = Field(
        default=True,
        description="Rich console output instead of JSON lines",
    )


__all__ = [
    "LoggingSettings",
]

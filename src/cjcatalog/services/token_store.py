"""Durable token stores.

The token pair is the only state shared by all instances of a deployment.
Stores hold exactly one record and are written without a lock: the last
write wins.

Implementations:
    - InMemoryTokenStore: process-local, for tests and single instances
    - SQLiteTokenStore: single-row table shared by instances on one volume
    - JsonFileTokenStore: a token file beside the application
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from cjcatalog.services.token_models import TokenPair
from cjcatalog.shared.constants import TokenConfig
from cjcatalog.shared.errors import CacheError, ErrorCode, ErrorContext
from cjcatalog.shared.logging import log_operation_error
from cjcatalog.shared.permissions import set_secure_file_permissions

logger = logging.getLogger(__name__)


class TokenStore(Protocol):
    """Protocol for durable token pair storage."""

    async def load(self) -> TokenPair | None:
        """Return the stored pair, or None when nothing usable is stored."""

    async def save(self, pair: TokenPair) -> None:
        """Replace the stored pair."""


def _decode_record(raw: str, source: str) -> TokenPair | None:
    """Decode a stored record; a corrupt record reads as absent."""
    try:
        return TokenPair.from_dict(json.loads(raw))
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("Ignoring corrupt token record in %s: %s", source, e)
        return None


class InMemoryTokenStore:
    """Token store kept in process memory."""

    def __init__(self, pair: TokenPair | None = None) -> None:
        self._pair = pair
        self.save_count = 0

    async def load(self) -> TokenPair | None:
        return self._pair

    async def save(self, pair: TokenPair) -> None:
        self._pair = pair
        self.save_count += 1


class SQLiteTokenStore:
    """Token store backed by a single-row SQLite table.

    Uses WAL mode so several processes can share the database file.
    Blocking sqlite3 calls run in a worker thread.

    Args:
        db_path: Path to the SQLite database file
        record_key: Key of the token row

    Raises:
        CacheError: If the database cannot be opened
    """

    def __init__(
        self,
        db_path: Path | str,
        record_key: str = TokenConfig.RECORD_KEY,
    ) -> None:
        self.db_path = Path(db_path)
        self.record_key = record_key
        self.conn: sqlite3.Connection | None = None
        self._initialize_db()

    def _initialize_db(self) -> None:
        context = ErrorContext(
            operation="initialize_token_store",
            additional_data={"db_path": str(self.db_path)},
        )
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            db_is_new = not self.db_path.exists()

            self.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                isolation_level=None,
            )
            if db_is_new:
                try:
                    set_secure_file_permissions(self.db_path)
                except OSError as e:
                    logger.warning(
                        "Failed to set secure permissions for %s: %s", self.db_path, e
                    )

            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute("PRAGMA synchronous=NORMAL")
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS token_record (
                    key TEXT PRIMARY KEY NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
                """
            )
        except (sqlite3.Error, OSError) as e:
            error = CacheError(
                code=ErrorCode.TOKEN_STORE_READ_FAILED,
                message=f"Failed to initialize token store: {e!s}",
                context=context,
                original_error=e,
            )
            log_operation_error(logger=logger, error=error)
            raise error from e

    def _connection(self, code: ErrorCode) -> sqlite3.Connection:
        if self.conn is None:
            raise CacheError(
                code=code,
                message="Token store connection is closed",
                context=ErrorContext(
                    operation="token_store",
                    additional_data={"db_path": str(self.db_path)},
                ),
            )
        return self.conn

    def _load_sync(self) -> TokenPair | None:
        row = self._connection(ErrorCode.TOKEN_STORE_READ_FAILED).execute(
            "SELECT value FROM token_record WHERE key = ?",
            (self.record_key,),
        ).fetchone()
        if row is None:
            return None
        return _decode_record(row[0], str(self.db_path))

    def _save_sync(self, pair: TokenPair) -> None:
        self._connection(ErrorCode.TOKEN_STORE_WRITE_FAILED).execute(
            """
            INSERT INTO token_record (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (
                self.record_key,
                json.dumps(pair.to_dict()),
                datetime.now(timezone.utc).isoformat(),
            ),
        )

    async def load(self) -> TokenPair | None:
        """Load the token pair.

        Raises:
            CacheError: If the database read fails
        """
        try:
            return await asyncio.to_thread(self._load_sync)
        except sqlite3.Error as e:
            raise CacheError(
                code=ErrorCode.TOKEN_STORE_READ_FAILED,
                message=f"Failed to read token record: {e!s}",
                context=ErrorContext(
                    operation="token_store_load",
                    additional_data={"db_path": str(self.db_path)},
                ),
                original_error=e,
            ) from e

    async def save(self, pair: TokenPair) -> None:
        """Replace the token pair.

        Raises:
            CacheError: If the database write fails
        """
        try:
            await asyncio.to_thread(self._save_sync, pair)
        except sqlite3.Error as e:
            raise CacheError(
                code=ErrorCode.TOKEN_STORE_WRITE_FAILED,
                message=f"Failed to write token record: {e!s}",
                context=ErrorContext(
                    operation="token_store_save",
                    additional_data={"db_path": str(self.db_path)},
                ),
                original_error=e,
            ) from e

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None


class JsonFileTokenStore:
    """Token store kept in a JSON file.

    Writes go to a temporary sibling first and are moved into place, so a
    reader never sees a half-written file.
    """

    def __init__(self, file_path: Path | str = TokenConfig.DEFAULT_FILE_PATH) -> None:
        self.file_path = Path(file_path)

    def _load_sync(self) -> TokenPair | None:
        if not self.file_path.exists():
            return None
        return _decode_record(self.file_path.read_text(encoding="utf-8"), str(self.file_path))

    def _save_sync(self, pair: TokenPair) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.file_path.with_name(self.file_path.name + ".tmp")
        tmp_path.write_text(json.dumps(pair.to_dict(), indent=2), encoding="utf-8")
        try:
            set_secure_file_permissions(tmp_path)
        except OSError as e:
            logger.warning("Failed to set secure permissions for %s: %s", tmp_path, e)
        tmp_path.replace(self.file_path)

    async def load(self) -> TokenPair | None:
        """Load the token pair.

        Raises:
            CacheError: If the file exists but cannot be read
        """
        try:
            return await asyncio.to_thread(self._load_sync)
        except OSError as e:
            raise CacheError(
                code=ErrorCode.TOKEN_STORE_READ_FAILED,
                message=f"Failed to read token file: {e!s}",
                context=ErrorContext(
                    operation="token_store_load",
                    additional_data={"file_path": str(self.file_path)},
                ),
                original_error=e,
            ) from e

    async def save(self, pair: TokenPair) -> None:
        """Replace the token pair.

        Raises:
            CacheError: If the file cannot be written
        """
        try:
            await asyncio.to_thread(self._save_sync, pair)
        except OSError as e:
            raise CacheError(
                code=ErrorCode.TOKEN_STORE_WRITE_FAILED,
                message=f"Failed to write token file: {e!s}",
                context=ErrorContext(
                    operation="token_store_save",
                    additional_data={"file_path": str(self.file_path)},
                ),
                original_error=e,
            ) from e


def create_token_store(backend: str, path: Path | str | None = None) -> TokenStore:
    """Build the token store for a configured backend.

    Args:
        backend: One of ``memory``, ``sqlite`` or ``file``
        path: Storage location; the backend default when omitted

    Raises:
        ValueError: If the backend is unknown
    """
    if backend == TokenConfig.BACKEND_MEMORY:
        return InMemoryTokenStore()
    if backend == TokenConfig.BACKEND_SQLITE:
        return SQLiteTokenStore(path or TokenConfig.DEFAULT_SQLITE_PATH)
    if backend == TokenConfig.BACKEND_FILE:
        return JsonFileTokenStore(path or TokenConfig.DEFAULT_FILE_PATH)

    msg = f"Unknown token store backend: {backend!r}"
    raise ValueError(msg)

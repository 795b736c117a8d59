"""File permission utilities.

Token records hold live credentials, so files created for them are made
readable by the owner only.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def set_secure_file_permissions(file_path: Path | str) -> None:
    """Set file permissions to 600 (owner read/write only).

    A no-op on Windows, where the user profile ACL already applies.

    Args:
        file_path: Path to the file to secure

    Raises:
        OSError: If the file does not exist or chmod fails
    """
    file_path = Path(file_path)
    if sys.platform == "win32":
        logger.debug("Skipping chmod on Windows for: %s", file_path)
        return

    file_path.chmod(0o600)
    logger.debug("Unix permissions (600) set for: %s", file_path)

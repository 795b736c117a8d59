"""Request throttler for outbound concurrency control.

This module bounds the number of upstream calls one process instance has
in flight. Instances do not coordinate: the ceiling is per process.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from cjcatalog.shared.constants import APIConfig
from cjcatalog.shared.errors import ApplicationError, ErrorCode, ErrorContext
from cjcatalog.shared.logging import log_operation_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThrottleTicket:
    """One unit of outbound-call capacity.

    Opaque to callers; handed back to ``RequestThrottler.release`` exactly once.
    """

    ticket_id: int


class RequestThrottler:
    """Counting semaphore with FIFO admission for outbound requests.

    Callers beyond ``max_concurrent`` wait in arrival order. Use ``slot()``
    so the ticket is released on every exit path, including cancellation.

    Args:
        max_concurrent: Maximum number of tickets outstanding (default: 25)
    """

    def __init__(self, max_concurrent: int = APIConfig.DEFAULT_MAX_CONCURRENT):
        """Initialize the throttler.

        Raises:
            ApplicationError: If max_concurrent is not positive
        """
        if max_concurrent <= 0:
            error = ApplicationError(
                code=ErrorCode.VALIDATION_ERROR,
                message=f"Concurrency limit must be positive, got: {max_concurrent}",
                context=ErrorContext(
                    operation="request_throttler_init",
                    additional_data={"max_concurrent": max_concurrent},
                ),
            )
            log_operation_error(logger=logger, error=error)
            raise error

        self.max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._outstanding: set[int] = set()
        self._ids = itertools.count(1)
        self._high_water_mark = 0
        self._waiting = 0

    async def acquire(self) -> ThrottleTicket:
        """Wait for capacity and return a ticket.

        Returns:
            A ticket that must be released exactly once
        """
        self._waiting += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._waiting -= 1

        ticket = ThrottleTicket(next(self._ids))
        self._outstanding.add(ticket.ticket_id)
        self._high_water_mark = max(self._high_water_mark, len(self._outstanding))

        logger.debug(
            "Throttle ticket %d acquired (%d/%d active)",
            ticket.ticket_id,
            len(self._outstanding),
            self.max_concurrent,
        )
        return ticket

    def release(self, ticket: ThrottleTicket) -> None:
        """Return a ticket's capacity to the pool.

        Raises:
            ApplicationError: If the ticket is unknown or already released
        """
        if ticket.ticket_id not in self._outstanding:
            error = ApplicationError(
                code=ErrorCode.CONCURRENCY_ERROR,
                message=f"Throttle ticket {ticket.ticket_id} is not outstanding",
                context=ErrorContext(
                    operation="request_throttler_release",
                    additional_data={"ticket_id": ticket.ticket_id},
                ),
            )
            log_operation_error(logger=logger, error=error)
            raise error

        self._outstanding.remove(ticket.ticket_id)
        self._semaphore.release()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[ThrottleTicket]:
        """Hold one ticket for the duration of the ``async with`` block."""
        ticket = await self.acquire()
        try:
            yield ticket
        finally:
            self.release(ticket)

    @property
    def active_count(self) -> int:
        """Number of tickets currently outstanding."""
        return len(self._outstanding)

    @property
    def available_count(self) -> int:
        """Number of tickets that can be acquired without waiting."""
        return self.max_concurrent - len(self._outstanding)

    @property
    def waiting_count(self) -> int:
        """Number of callers queued for a ticket."""
        return self._waiting

    @property
    def high_water_mark(self) -> int:
        """Largest number of tickets ever outstanding at once."""
        return self._high_water_mark

    def get_stats(self) -> dict[str, Any]:
        return {
            "max_concurrent": self.max_concurrent,
            "active": self.active_count,
            "available": self.available_count,
            "waiting": self.waiting_count,
            "high_water_mark": self.high_water_mark,
        }

"""Per-table throttling state for batch operations.

When DynamoDB reports part of a batch as unprocessed, the affected table is
gated for a jittered, exponentially growing delay before its elements are sent
again. Every table owns its own state, so a throttled table never delays
requests for a healthy one.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

Element = TypeVar("Element")

DEFAULT_BACKOFF_UNIT = 0.05
MAX_BACKOFF_FACTOR = 8


def exponential_backoff(
    attempts: int,
    unit: float = DEFAULT_BACKOFF_UNIT,
    max_attempts: int = MAX_BACKOFF_FACTOR,
) -> float:
    """Return a delay in seconds using capped exponential backoff with full jitter.

    The delay is drawn uniformly from ``[0, unit * 2 ** min(attempts, max_attempts)]``.
    """
    return random.uniform(0, unit * 2 ** min(attempts, max_attempts))


@dataclass
class TableThrottle(Generic[Element]):
    """Backoff state of a single table.

    Attributes:
        table_name: The table this state belongs to.
        backoff_factor: Number of consecutive throttled responses, capped.
        unprocessed: Elements waiting for the gate to open, in send order.
        waiter: Task that completes when the table may be sent to again.

    """

    table_name: str
    backoff_factor: int = 0
    unprocessed: list[Element] = field(default_factory=list)
    waiter: "asyncio.Task[None] | None" = None

    @property
    def gated(self) -> bool:
        return self.waiter is not None


class ThrottleTracker(Generic[Element]):
    """Tracks exponential backoff independently for each table."""

    def __init__(
        self,
        *,
        backoff_unit: float = DEFAULT_BACKOFF_UNIT,
        max_backoff_factor: int = MAX_BACKOFF_FACTOR,
    ) -> None:
        self._backoff_unit = backoff_unit
        self._max_backoff_factor = max_backoff_factor
        self._tables: dict[str, TableThrottle[Element]] = {}
        self._waiters: dict[asyncio.Task[None], str] = {}

    def table(self, table_name: str) -> TableThrottle[Element]:
        if table_name not in self._tables:
            self._tables[table_name] = TableThrottle(table_name=table_name)
        return self._tables[table_name]

    def is_gated(self, table_name: str) -> bool:
        state = self._tables.get(table_name)
        return state is not None and state.gated

    @property
    def waiters(self) -> list[asyncio.Task[None]]:
        return list(self._waiters)

    @property
    def gated_count(self) -> int:
        return len(self._waiters)

    @property
    def deferred_count(self) -> int:
        return sum(len(state.unprocessed) for state in self._tables.values())

    def owns(self, waiter: "asyncio.Future[object]") -> bool:
        return waiter in self._waiters

    def throttle(self, table_name: str, unprocessed: list[Element]) -> None:
        """Gate a table after DynamoDB reported elements for it as unprocessed.

        The elements are queued behind any already deferred for the table and
        the backoff factor grows, up to its cap.
        """
        state = self.table(table_name)
        state.backoff_factor = min(state.backoff_factor + 1, self._max_backoff_factor)
        state.unprocessed = [*state.unprocessed, *unprocessed]

        if state.waiter is not None:
            self._waiters.pop(state.waiter, None)
            state.waiter.cancel()

        delay = exponential_backoff(
            state.backoff_factor,
            self._backoff_unit,
            self._max_backoff_factor,
        )
        logger.debug(
            "Table %s throttled with %d unprocessed elements, retrying in %.3fs",
            table_name,
            len(state.unprocessed),
            delay,
        )
        state.waiter = asyncio.create_task(asyncio.sleep(delay))
        self._waiters[state.waiter] = table_name

    def defer(self, table_name: str, element: Element) -> None:
        """Queue an element for a gated table until its backoff elapses."""
        self.table(table_name).unprocessed.append(element)

    def release(self, waiter: "asyncio.Future[object]") -> tuple[str, list[Element]]:
        """Open the gate owned by a completed waiter.

        Returns:
            The table name and the elements that may now be sent.

        """
        table_name = self._waiters.pop(waiter)  # type: ignore[arg-type]
        state = self._tables[table_name]
        elements, state.unprocessed, state.waiter = state.unprocessed, [], None
        return table_name, elements

    def succeeded(self, table_name: str) -> None:
        """Reset a table's backoff after a response with nothing unprocessed."""
        self.table(table_name).backoff_factor = 0

    def cancel(self) -> None:
        for waiter in self._waiters:
            waiter.cancel()
        self._waiters.clear()
        for state in self._tables.values():
            state.unprocessed = []
            state.waiter = None


__all__ = [
    "DEFAULT_BACKOFF_UNIT",
    "MAX_BACKOFF_FACTOR",
    "TableThrottle",
    "ThrottleTracker",
    "exponential_backoff",
]

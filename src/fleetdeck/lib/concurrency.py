"""Bounded fan-out helpers for asyncio tasks."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class TaskOutcome(Generic[T, R]):
    """Result of one task in a bounded map.

    Exactly one of ``value`` and ``error`` is meaningful; ``ok`` tells which.

    Attributes:
        item: The input item the task was started for
        value: Return value when the task succeeded
        error: Exception raised by the task, if any
    """

    item: T
    value: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def bounded_map(
    func: Callable[[T], Awaitable[R]],
    items: Iterable[T],
    concurrency: int,
) -> list[TaskOutcome[T, R]]:
    """Run ``func`` over ``items`` with at most ``concurrency`` in flight.

    A failing task never cancels its siblings: its exception is captured in
    the returned TaskOutcome. Results are returned in input order.

    Args:
        func: Async callable applied to each item
        items: Inputs to map over
        concurrency: Maximum concurrent calls (values below 1 are treated as 1)

    Returns:
        One TaskOutcome per input item, in order.

    Example:
        >>> outcomes = await bounded_map(probe.probe, refs, concurrency=4)
        >>> found = [o.item for o in outcomes if o.ok and o.value]
    """
    items = list(items)
    if not items:
        return []

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def run_one(item: T) -> TaskOutcome[T, R]:
        async with semaphore:
            try:
                return TaskOutcome(item=item, value=await func(item))
            except Exception as exc:
                return TaskOutcome(item=item, error=exc)

    # Use gather to maintain order
    return list(await asyncio.gather(*(run_one(item) for item in items)))

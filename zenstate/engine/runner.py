"""Run independent reconciliation passes concurrently.

Only independent entities belong in one batch.  Dependent entities (a stack
and the components it references) must be reconciled in separate, ordered
batches so referenced ids resolve before the dependent pass starts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

import anyio
from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

T = TypeVar("T")


async def reconcile_concurrently(
    passes: Sequence[Callable[[], Awaitable[T]]],
    *,
    limit: int | None = None,
) -> list[T]:
    """Run *passes* in a task group and return their results in input order.

    The first failure cancels the remaining passes and propagates (wrapped in
    an ``ExceptionGroup`` by anyio).  *limit* caps how many run at once.
    """
    results: list[Any] = [None] * len(passes)
    limiter = anyio.CapacityLimiter(limit) if limit else None

    async def _run(index: int, run_pass: Callable[[], Awaitable[T]]) -> None:
        if limiter is None:
            results[index] = await run_pass()
            return
        async with limiter:
            results[index] = await run_pass()

    logger.debug("Running {} reconciliation pass(es) concurrently", len(passes))
    async with anyio.create_task_group() as tg:
        for index, run_pass in enumerate(passes):
            tg.start_soon(_run, index, run_pass)
    return results

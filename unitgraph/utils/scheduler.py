"""Bounded-batch-with-barrier executor for Oracle calls.

Work is processed in fixed-size batches. Inside a batch every call runs
concurrently; the scheduler awaits the whole batch before handing the results
to the ``on_batch`` callback (where callers merge into shared state and write
their checkpoint) and only then starts the next batch.

Because merging happens after the barrier, in input order, the merged state
does not depend on which call inside a batch finished first.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from tqdm import tqdm

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split *items* into consecutive lists of at most *size* elements.

    Examples:
        >>> chunked([1, 2, 3, 4, 5], 2)
        [[1, 2], [3, 4], [5]]
    """
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class ConcurrencyScheduler(Generic[T, R]):
    """Run an async worker over a work list in sequential, concurrent batches.

    Args:
        batch_size: Maximum number of concurrent calls per batch
        desc: Progress bar label
        show_progress: Whether to display a tqdm progress bar

    Examples:
        >>> async def double(x):
        ...     return x * 2
        >>> scheduler = ConcurrencyScheduler(batch_size=2, show_progress=False)
        >>> asyncio.run(scheduler.run([1, 2, 3], double))
        [2, 4, 6]
    """

    def __init__(self, batch_size: int, desc: Optional[str] = None, show_progress: bool = True):
        if batch_size < 1:
            raise ValueError(f"batch size must be >= 1, got {batch_size}")
        self.batch_size = batch_size
        self.desc = desc
        self.show_progress = show_progress

    async def _guarded(self, worker: Callable[[T], Awaitable[R]], item: T) -> Optional[R]:
        # A failing item must not take down the rest of its batch
        try:
            return await worker(item)
        except Exception as e:
            logger.warning(f"Worker failed for {item!r}: {e}")
            return None

    async def run(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
        on_batch: Optional[Callable[[List[T], List[Optional[R]]], None]] = None,
    ) -> List[Optional[R]]:
        """Process *items* batch by batch.

        Args:
            items: Work list
            worker: Async callable applied to each item
            on_batch: Called once per batch, after the barrier, with the batch
                items and their results (``None`` where the worker raised)

        Returns:
            All results in input order
        """
        results: List[Optional[R]] = []
        batches = chunked(items, self.batch_size)

        with tqdm(total=len(items), desc=self.desc, disable=not self.show_progress) as bar:
            for index, batch in enumerate(batches, 1):
                batch_results = await asyncio.gather(*(self._guarded(worker, item) for item in batch))
                batch_results = list(batch_results)
                if on_batch is not None:
                    on_batch(batch, batch_results)
                results.extend(batch_results)
                bar.update(len(batch))
                logger.debug(f"{self.desc or 'batch'} {index}/{len(batches)} joined ({len(batch)} items)")

        return results


__all__ = [
    "chunked",
    "ConcurrencyScheduler",
]

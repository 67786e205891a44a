"""
Sequential batch processing for large writes.

Large arrays are split into chunks that are handed to the store one after
another, so a single request never builds one enormous statement.

Failure semantics: chunks before the failing one stay persisted. A failure
in the first chunk re-raises the original error (nothing was written); a
later failure raises PartialBatchError describing what persisted and what
did not.
"""

from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

from crudcore.errors.exceptions import PartialBatchError
from crudcore.logging import Logger, ensure_logger

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_BATCH_SIZE = 50
MAX_BATCH_SIZE = 200


def optimal_batch_size(total: int, max_batch_size: int = MAX_BATCH_SIZE) -> int:
    """
    Chunk size for ``total`` items.

    Up to 10 items go in one chunk; larger inputs use 20, 50, 100 or 200
    items per chunk as they grow, never more than ``max_batch_size``.
    """
    if total <= 10:
        size = total
    elif total <= 100:
        size = 20
    elif total <= 500:
        size = 50
    elif total <= 1000:
        size = 100
    else:
        size = 200
    return max(1, min(size, max_batch_size))


def chunk(items: Sequence[T], size: int) -> List[List[T]]:
    """Split ``items`` into lists of at most ``size`` items, keeping order."""
    if size <= 0:
        raise ValueError("Batch size must be greater than zero")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


class BatchProcessor:
    """
    Run an async processor over chunks of items, one chunk at a time.

    Args:
        max_batch_size: Upper bound for a chunk
        logger: Optional logger
    """

    def __init__(self, max_batch_size: int = MAX_BATCH_SIZE, logger: Optional[Logger] = None):
        self.max_batch_size = max_batch_size
        self.logger = ensure_logger(logger, __name__)

    async def process_sequential(
        self,
        items: Sequence[T],
        processor: Callable[[List[T]], Awaitable[Sequence[R]]],
        batch_size: Optional[int] = None,
    ) -> List[R]:
        """
        Process ``items`` chunk by chunk.

        Args:
            items: Items to process
            processor: Coroutine function receiving one chunk and returning
                its results
            batch_size: Chunk size; chosen from the item count when omitted

        Returns:
            Results of every chunk, concatenated in input order

        Raises:
            PartialBatchError: When a chunk after the first one fails
        """
        if not items:
            return []

        size = batch_size or optimal_batch_size(len(items), self.max_batch_size)
        batches = chunk(items, size)
        results: List[Any] = []
        done = 0

        for index, batch in enumerate(batches):
            try:
                results.extend(await processor(batch))
            except Exception as e:
                if index == 0:
                    raise
                self.logger.error(
                    f"Batch {index + 1}/{len(batches)} failed after {done} items persisted: {str(e)}"
                )
                raise PartialBatchError(
                    completed=results,
                    succeeded_range=(0, done),
                    failed_range=(done, done + len(batch)),
                    cause=e,
                ) from e
            done += len(batch)
            self.logger.debug(f"Processed batch {index + 1}/{len(batches)} ({done}/{len(items)} items)")

        return results

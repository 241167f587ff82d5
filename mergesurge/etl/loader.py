# mergesurge/etl/loader.py
"""
Splits a batch into chunks and processes every chunk on its own thread.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Sequence

from ..utils import batch_iterable

logger = logging.getLogger(__name__)

InsertFn = Callable[[List[Any], int], None]
StartFn = Callable[[int], None]


def chunked(rows: Sequence[Any], chunk_size: int) -> List[List[Any]]:
    """
    Split rows into consecutive chunks of at most chunk_size.

    >>> [len(c) for c in chunked(list(range(25)), 10)]
    [10, 10, 5]
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
    return list(batch_iterable(rows, chunk_size))


class ParallelChunkLoader:
    """
    Runs ``insert_fn(chunk, chunk_index)`` for every chunk concurrently.

    One thread per chunk, so ``chunk_size`` controls how wide the load runs.
    The loader waits for every chunk to finish, successfully or not, before
    returning. A failing chunk does not cancel the others: chunks already
    running keep going until they finish or fail on their own. Once all have
    finished, the error of the lowest numbered failed chunk is raised.

    Example
    -------
    ::

        loader = ParallelChunkLoader(chunk_size=10_000)
        loader.load(rows, insert_chunk,
                    on_start=lambda threads: logger.info(f"{threads} thread(s)"))
    """

    def __init__(self, chunk_size: int = 10_000):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
        self.chunk_size = chunk_size
        self.thread_count = 0

    def load(self, rows: Sequence[Any], insert_fn: InsertFn, on_start: Optional[StartFn] = None) -> None:
        """
        Partition rows and insert every chunk in parallel.

        Args:
            rows: The full batch
            insert_fn: Called once per chunk with (chunk, chunk_index) on a worker thread
            on_start: Called once with the thread count before any chunk starts
        """
        chunks = chunked(rows, self.chunk_size)
        self.thread_count = len(chunks)
        if on_start is not None:
            on_start(self.thread_count)
        if not chunks:
            return

        with ThreadPoolExecutor(max_workers=self.thread_count, thread_name_prefix='chunk') as executor:
            futures = [executor.submit(insert_fn, chunk, idx) for idx, chunk in enumerate(chunks)]
        # leaving the executor block joins every worker

        errors = [(idx, future.exception()) for idx, future in enumerate(futures)
                  if future.exception() is not None]
        if not errors:
            return
        for idx, error in errors[1:]:
            logger.error(f"Chunk #{idx} also failed: {error}")
        raise errors[0][1]

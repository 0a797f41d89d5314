"""Bounded-concurrency execution in fixed-size chunks."""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from moviematch_recommendation_service.config import (
    get_batch_chunk_size,
    get_batch_inter_chunk_delay,
    get_batch_max_workers,
)

logger = logging.getLogger(__name__)


@dataclass
class ChunkOutcome:
    item: Any
    value: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ChunkedExecutor:
    """
    Run a function over items chunk by chunk.

    Items of one chunk run concurrently on at most ``max_workers`` threads and
    are all joined before the next chunk starts; ``inter_chunk_delay`` seconds
    pass between chunks. With ``max_workers=1`` everything runs inline.
    """

    def __init__(
        self,
        chunk_size: int | None = None,
        max_workers: int | None = None,
        inter_chunk_delay: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.chunk_size = chunk_size if chunk_size is not None else get_batch_chunk_size()
        self.max_workers = max_workers if max_workers is not None else get_batch_max_workers()
        self.inter_chunk_delay = (
            inter_chunk_delay if inter_chunk_delay is not None else get_batch_inter_chunk_delay()
        )
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._sleep = sleep

    def map(self, fn: Callable[[Any], Any], items: Iterable[Any]) -> list[ChunkOutcome]:
        """
        Apply ``fn`` to every item.

        Exceptions raised by ``fn`` are captured per item, never raised.

        Returns:
            One ChunkOutcome per item, in input order
        """
        items = list(items)
        outcomes: list[ChunkOutcome] = []

        for start in range(0, len(items), self.chunk_size):
            if start > 0 and self.inter_chunk_delay > 0:
                self._sleep(self.inter_chunk_delay)

            chunk = items[start : start + self.chunk_size]
            if self.max_workers == 1:
                outcomes.extend(self._run_one(fn, item) for item in chunk)
                continue

            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(chunk))) as pool:
                futures = [pool.submit(self._run_one, fn, item) for item in chunk]
                outcomes.extend(future.result() for future in futures)

        return outcomes

    @staticmethod
    def _run_one(fn: Callable[[Any], Any], item: Any) -> ChunkOutcome:
        try:
            return ChunkOutcome(item=item, value=fn(item))
        except Exception as e:
            logger.warning(f"Chunk item {item!r} failed: {e}")
            return ChunkOutcome(item=item, error=e)

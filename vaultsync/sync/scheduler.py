"""
Bounded-concurrency batch execution.

Items run in consecutive groups of at most ``concurrency_limit``; a group
must finish completely, failures included, before the next one starts.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterator, Sequence, TypeVar

from vaultsync.sync.exceptions import AuthError

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY_LIMIT = 5

T = TypeVar("T")


@dataclass
class ItemResult(Generic[T]):
    """Outcome of one item: either a value or the error it raised."""

    item: T
    value: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport(Generic[T]):
    results: list[ItemResult[T]] = field(default_factory=list)
    groups: int = 0


class BatchScheduler:
    def __init__(
        self,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        fatal_errors: tuple[type[Exception], ...] = (AuthError,),
    ):
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be at least 1, got {concurrency_limit}")
        self.concurrency_limit = concurrency_limit
        self.fatal_errors = fatal_errors

    def groups(self, items: Sequence[T]) -> Iterator[list[T]]:
        for start in range(0, len(items), self.concurrency_limit):
            yield list(items[start:start + self.concurrency_limit])

    def run(self, items: Sequence[T], func: Callable[[T], Any]) -> BatchReport[T]:
        """
        Apply ``func`` to every item, one group at a time.

        Exceptions raised by ``func`` are captured per item. A fatal error
        is re-raised once its group has finished.
        """
        report: BatchReport[T] = BatchReport()
        if not items:
            return report

        with ThreadPoolExecutor(
            max_workers=self.concurrency_limit, thread_name_prefix="vaultsync"
        ) as executor:
            for group in self.groups(items):
                futures = [executor.submit(self._call, func, item) for item in group]
                group_results = [future.result() for future in futures]
                report.results.extend(group_results)
                report.groups += 1

                for result in group_results:
                    if result.error is not None and isinstance(result.error, self.fatal_errors):
                        raise result.error

        logger.debug(f"Ran {len(items)} items in {report.groups} group(s)")
        return report

    @staticmethod
    def _call(func: Callable[[T], Any], item: T) -> ItemResult[T]:
        try:
            return ItemResult(item=item, value=func(item))
        except Exception as e:
            logger.debug(f"Batch item {item!r} failed: {e}")
            return ItemResult(item=item, error=e)

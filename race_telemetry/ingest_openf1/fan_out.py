"""
Fan-out/join over blocking fetch calls.

Every call is submitted to a thread pool at once; the join waits for all of
them. The first failure cancels whatever has not started yet and is
re-raised, so an aggregation never proceeds on partial data.

Limitation: a thread cannot be interrupted, so a call already running when
another fails is not stopped. The join returns without waiting for it, its
result is dropped, and it ends on its own (bounded by the HTTP timeout). If
the caller closes the client's session meanwhile, that stray request fails
inside the worker and the error is discarded with the result.
"""
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import TypeVar

from race_telemetry.config import cfg
from race_telemetry.utils.logger import logger

T = TypeVar("T")


def fan_out(calls: Sequence[Callable[[], T]], max_workers: int | None = None) -> list[T]:
    """
    Run independent calls concurrently and join on all of them.

    Args:
        calls: Zero-argument callables, typically bound fetches.
        max_workers: Pool size (defaults to ``cfg.api.max_workers``).

    Returns:
        Results in submission order.

    Raises:
        The exception of the first failed call (in submission order among
        the calls that had failed when the join woke up).
    """
    if not calls:
        return []

    workers = max(1, min(max_workers or cfg.api.max_workers, len(calls)))
    pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="openf1")
    try:
        futures = [pool.submit(call) for call in calls]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)

        failed = [f for f in futures if f in done and f.exception() is not None]
        if failed:
            for future in pending:
                future.cancel()
            logger.debug(f"Fan-out aborted: {len(failed)} failed, {len(pending)} cancelled")
            raise failed[0].exception()

        return [future.result() for future in futures]
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

"""Order-preserving concurrent map over a bounded thread pool.

``p_map(items, mapper, concurrency=n)`` runs at most ``n`` mapper calls at a
time and returns results in input order, no matter which call finishes
first. Classification batches use it; the mapper is expected to be I/O bound.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")


def p_map(
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT],
    *,
    concurrency: int,
    stop_on_error: bool = True,
) -> list[OutT]:
    """Map ``iterable`` through ``mapper`` with at most ``concurrency`` calls in flight.

    - When ``stop_on_error`` is True (default) the first failure propagates
      and work that has not started yet is cancelled.
    - Otherwise every item runs and failures are raised together as an
      ``ExceptionGroup``.
    """

    if not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    pending = iter(enumerate(iterable))
    results: dict[int, OutT] = {}
    errors: list[Exception] = []
    in_flight: dict[Future[OutT], int] = {}

    with ThreadPoolExecutor(max_workers=concurrency) as pool:

        def _fill() -> None:
            while len(in_flight) < concurrency:
                nxt = next(pending, None)
                if nxt is None:
                    return
                idx, item = nxt
                in_flight[pool.submit(mapper, item)] = idx

        _fill()
        while in_flight:
            done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
            for fut in done:
                idx = in_flight.pop(fut)
                try:
                    results[idx] = fut.result()
                except Exception as e:  # noqa: BLE001
                    if stop_on_error:
                        pool.shutdown(wait=False, cancel_futures=True)
                        raise
                    errors.append(e)
            _fill()

    if errors:
        raise ExceptionGroup("p_map: one or more mapper calls failed", errors)
    return [results[i] for i in sorted(results)]


__all__ = ["p_map"]

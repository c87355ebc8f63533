"""
Cadence control for sequential probing.
Keeps the harness from tripping the target's rate limiter by itself.
"""
import time
from typing import Callable, Iterable, Iterator, TypeVar

T = TypeVar("T")


def paced(items: Iterable[T], every: int, delay_ms: int,
          sleep: Callable[[float], None] = time.sleep) -> Iterator[T]:
    """
    Yields `items` in order, pausing `delay_ms` after the first item of each
    block of `every` items (items 0, every, 2*every, ...).
    """
    every = max(1, every)
    for i, item in enumerate(items):
        yield item
        if delay_ms > 0 and i % every == 0:
            sleep(delay_ms / 1000.0)


def pause(delay_ms: int, sleep: Callable[[float], None] = time.sleep):
    """Cool-down between sub-assessments."""
    if delay_ms > 0:
        sleep(delay_ms / 1000.0)

"""Bounded fan-out for independent HTTP lookups."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable

from services.results import Ok, Skipped

logger = logging.getLogger(__name__)


def run_bounded(func: Callable, items: Iterable, max_workers: int = 10) -> list:
    """Call ``func(item)`` for every item with at most ``max_workers`` in flight.

    Returns one ``Ok`` or ``Skipped`` per item, in input order. Each worker
    only writes its own result slot.
    """
    items = list(items)
    if not items:
        return []

    results = [None] * len(items)

    def call(index, item):
        try:
            return index, Ok(item, func(item))
        except Exception as e:
            logger.debug("Lookup for %s failed: %s", item, e)
            return index, Skipped(item, str(e) or e.__class__.__name__)

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = [executor.submit(call, i, item) for i, item in enumerate(items)]
        for future in as_completed(futures):
            index, outcome = future.result()
            results[index] = outcome

    return results

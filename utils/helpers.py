"""
Shared utility functions for the cluster forecaster.
"""
from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from typing import Callable, Iterable

import pandas as pd


def parallel_map(func: Callable, items: Iterable, n_jobs: int = 1) -> list:
    """
    Apply `func` to every item, optionally on a process pool.

    Results come back in input order, so the output is identical to the
    sequential run. `func` must be a module-level (picklable) callable.
    n_jobs = -1 uses every available core.
    """
    items = list(items)
    if n_jobs == 1 or len(items) < 2:
        return [func(item) for item in items]

    with ProcessPoolExecutor(max_workers=None if n_jobs == -1 else n_jobs) as executor:
        futures = [executor.submit(func, item) for item in items]
        return [future.result() for future in futures]


def consecutive_dates(last_date, periods: int) -> pd.DatetimeIndex:
    """Calendar days last_date+1 … last_date+periods, no gaps."""
    start = pd.Timestamp(last_date).normalize() + pd.Timedelta(days=1)
    return pd.date_range(start=start, periods=periods, freq="D")

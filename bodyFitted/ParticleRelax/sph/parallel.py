# -- Data-Parallel Phase Execution -- #

'''
Fan-out of per-particle (or per-pair) work over a thread pool.

Each relaxation phase splits its index range into contiguous chunks.
A task receives a half-open range [start, stop) and writes only to
rows inside that range, so chunks never touch the same memory and no
locking is needed. forEachRange returns only after every chunk has
finished, which is the barrier between phases.

NumPy releases the GIL inside most array kernels, so threads give a
useful speed-up on large particle counts; with workers == 1 the same
code runs as a plain loop.
'''

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from bodyFitted.ParticleRelax import constants as const


class ParticleExecutor:
    '''
    Runs range tasks serially or on a pool of worker threads.

    Parameters:
    -----------
    workers : int
        Number of worker threads (1 = run in the calling thread)
    minChunkSize : int
        Smallest range handed to one worker
    '''

    def __init__(self, workers: int = 1, minChunkSize: int = const.minChunkSize) -> None:
        self._workers = max(1, int(workers))
        self._minChunkSize = max(1, int(minChunkSize))
        self._pool: ThreadPoolExecutor | None = None
        if self._workers > 1:
            self._pool = ThreadPoolExecutor(
                max_workers=self._workers,
                thread_name_prefix='particleRelax',
            )

    @property
    def workers(self) -> int:
        return self._workers

    def chunkRanges(self, nItems: int) -> list[tuple[int, int]]:
        '''
        Split [0, nItems) into at most `workers` contiguous ranges.

        Parameters:
        -----------
        nItems : int
            Number of items

        Returns:
        --------
        list[tuple[int, int]] : Half-open (start, stop) ranges
        '''
        if nItems <= 0:
            return []
        nChunks = min(self._workers, math.ceil(nItems / self._minChunkSize))
        nChunks = max(1, nChunks)
        bounds = [round(k * nItems / nChunks) for k in range(nChunks + 1)]
        return [(bounds[k], bounds[k + 1]) for k in range(nChunks) if bounds[k + 1] > bounds[k]]

    def forEachRange(self, nItems: int, task: Callable[[int, int], None]) -> None:
        '''
        Run task(start, stop) over [0, nItems) and wait for completion.

        Exceptions raised inside a worker propagate to the caller.

        Parameters:
        -----------
        nItems : int
            Number of items
        task : Callable[[int, int], None]
            Work on the half-open range [start, stop)
        '''
        ranges = self.chunkRanges(nItems)
        if self._pool is None or len(ranges) <= 1:
            for start, stop in ranges:
                task(start, stop)
            return

        futures = [self._pool.submit(task, start, stop) for start, stop in ranges]
        for future in futures:
            future.result()

    def close(self) -> None:
        '''Shut down the worker pool.'''
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def __enter__(self) -> ParticleExecutor:
        return self

    def __exit__(self, excType, excValue, traceback) -> None:
        self.close()

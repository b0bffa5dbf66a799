'''
A thread pool handle which can be resized without being replaced

The engine hands these out to the rest of the runtime, so the handle object stays the same
for the whole process lifetime, only the underlying executor gets swapped on resize.
'''

from __future__ import annotations

import os
import threading
from collections.abc import Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from typing import Callable, TypeVar

from .logging import make_logger

logger = make_logger(__name__)

T = TypeVar('T')


class ThreadPool:
    def __init__(self, size: int, *, name: str = 'dlengine') -> None:
        if size <= 0:
            raise ValueError(f'pool size should be positive, got {size}')
        self.name = name
        self._size = size
        self._lock = threading.Lock()
        self._executor = self._make_executor(size)
        self.mkl_threads: int | None = None

    def _make_executor(self, size: int) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=size, thread_name_prefix=self.name)

    @property
    def size(self) -> int:
        return self._size

    @property
    def executor(self) -> ThreadPoolExecutor:
        return self._executor

    def resize(self, size: int) -> bool:
        '''
        Returns False if the pool already had the requested size (nothing happens then)
        '''
        if size <= 0:
            raise ValueError(f'pool size should be positive, got {size}')
        with self._lock:
            if size == self._size:
                return False
            old = self._executor
            self._executor = self._make_executor(size)
            logger.debug(f'{self.name}: resized {self._size} -> {size}')
            self._size = size
        # already submitted tasks still finish on the old executor
        old.shutdown(wait=False)
        return True

    def set_mkl_thread(self, n: int) -> ThreadPool:
        # native blas reads these when it spins up its own threads
        os.environ['MKL_NUM_THREADS'] = str(n)
        os.environ['OMP_NUM_THREADS'] = str(n)
        self.mkl_threads = n
        return self

    def invoke(self, tasks: Iterable[Callable[[], T]]) -> list[Future[T]]:
        # resize may shut down the executor we read, so submit while holding the lock
        with self._lock:
            return [self._executor.submit(t) for t in tasks]

    def sync(self, futures: Sequence[Future[T]], timeout: float | None = None) -> list[T]:
        _done, not_done = wait_futures(futures, timeout=timeout)
        if len(not_done) > 0:
            raise TimeoutError(f'{self.name}: {len(not_done)} of {len(futures)} tasks did not finish in {timeout}s')
        # raises the first failure in submission order
        return [f.result() for f in futures]

    def invoke_and_wait(self, tasks: Iterable[Callable[[], T]], timeout: float | None = None) -> list[T]:
        return self.sync(self.invoke(tasks), timeout=timeout)

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __repr__(self) -> str:
        return f'ThreadPool(name={self.name!r}, size={self._size})'

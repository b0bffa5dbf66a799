'''
Detects accidental duplicate engine bootstrapping within the same process,
e.g. two copies of a worker-side model landing in one executor.

Deliberately independent from the engine state lock, so it works before/while the engine is being initialized.
'''

from __future__ import annotations

import threading


class SingletonGuard:
    def __init__(self) -> None:
        self._count = 0
        # only guards the counter, never held while anything else happens
        self._lock = threading.Lock()

    def check(self) -> bool:
        '''
        True only for the first caller since the last reset
        '''
        with self._lock:
            self._count += 1
            return self._count == 1

    def reset(self) -> None:
        with self._lock:
            self._count = 0

    @property
    def count(self) -> int:
        return self._count

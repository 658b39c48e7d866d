"""
Per-account locking

Serializes read-modify-write sequences on the same account number so that
concurrent debits, credits and transfers never lose an update.
"""

from contextlib import contextmanager, ExitStack
from typing import Dict
import threading


class AccountLockManager:
    """One re-entrant lock per account number, created on demand"""

    def __init__(self):
        self._locks: Dict[int, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def lock_for(self, number: int) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(number)
            if lock is None:
                lock = self._locks[number] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, *numbers: int):
        """Hold the locks of every given account, acquired in ascending order"""
        with ExitStack() as stack:
            for number in sorted(set(numbers)):
                stack.enter_context(self.lock_for(number))
            yield

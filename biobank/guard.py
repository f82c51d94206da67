"""
guard.py - Non-blocking mutual exclusion for fund-moving operations

A ReentrancyGuard is held for the whole duration of an operation that ends
with an external fund transfer (Ledger.withdraw, TransactionWorkflow.complete).
The transfer may call back into the same instance; while the guard is held
such a call is rejected immediately with ReentrantCall instead of blocking
or observing half-applied state.

One guard is shared by every fund-moving operation of a bank instance, so a
callback cannot slip from withdraw into complete or the other way round.
BiometricBank also checks it with ensure_free() before any other mutating
call, so a callback cannot change registrations, records or the clock
while a transfer is in flight either.
"""

from __future__ import annotations
from contextlib import contextmanager
import threading
from typing import Iterator, Optional

from .core import ReentrantCall


class ReentrancyGuard:
    """
    Call-scoped lock that fails fast instead of waiting.

    Example:
        guard = ReentrancyGuard("main")
        with guard.hold("withdraw"):
            ...  # a nested guard.hold() here raises ReentrantCall
    """

    def __init__(self, name: str = "guard"):
        self.name = name
        self._lock = threading.Lock()
        self._holder: Optional[str] = None

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def holder(self) -> Optional[str]:
        """Name of the operation currently holding the guard, if any."""
        return self._holder

    def ensure_free(self, operation: str) -> None:
        """
        Fail fast if a guarded operation is in progress, without taking the guard.

        Raises:
            ReentrantCall: If the guard is held
        """
        if self._lock.locked():
            raise ReentrantCall(
                f"{operation} rejected: {self._holder} in progress on {self.name}",
                operation=operation,
                holder=self._holder,
            )

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        """
        Hold the guard for the duration of the with-block.

        Raises:
            ReentrantCall: If the guard is already held
        """
        if not self._lock.acquire(blocking=False):
            raise ReentrantCall(
                f"{operation} rejected: {self._holder} in progress on {self.name}",
                operation=operation,
                holder=self._holder,
            )
        self._holder = operation
        try:
            yield
        finally:
            self._holder = None
            self._lock.release()

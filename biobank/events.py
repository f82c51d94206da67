"""
events.py - Notifications and the audit trail

Every observable outcome of the workflow (initiated, verified, failed,
completed, withdrawn) is recorded as an immutable Notification in the
bank's NotificationLog. The log is append-only and ordered by a monotonic
sequence number; it is the audit trail of the instance.

Notifications are emitted only after the state change they describe is
final, so a rolled-back operation leaves no notification behind.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Tuple


@dataclass(frozen=True, slots=True)
class Notification:
    """
    Immutable record of one emitted notification.

    Attributes:
        sequence: Monotonic position in the log (0-based)
        timestamp: Logical time of emission
        name: Notification name (e.g. "TransactionVerified")
        params: Frozen tuple of (key, value) pairs in emission order
    """
    sequence: int
    timestamp: datetime
    name: str
    params: tuple = ()

    @property
    def params_dict(self) -> Dict[str, Any]:
        return dict(self.params)

    @property
    def args(self) -> Tuple[Any, ...]:
        """Parameter values in emission order."""
        return tuple(v for _, v in self.params)

    def __repr__(self) -> str:
        params_str = ", ".join(f"{k}={v!r}" for k, v in self.params)
        return f"Notification(#{self.sequence} {self.name}({params_str}))"


Subscriber = Callable[[Notification], None]


class NotificationLog:
    """
    Append-only, ordered notification log with optional subscribers.

    Subscribers run after the state change is final. A subscriber that raises
    cannot undo that change, so its exception is recorded in failed_deliveries
    (and printed in verbose mode) instead of reaching the caller.
    """

    def __init__(self, clock: Callable[[], datetime], verbose: bool = True):
        self._clock = clock
        self.verbose = verbose
        self.failed_deliveries: List[Tuple[Notification, Exception]] = []
        self._entries: List[Notification] = []
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        """Call subscriber with every notification emitted from now on."""
        self._subscribers.append(subscriber)

    def emit(self, name: str, **params: Any) -> Notification:
        note = Notification(
            sequence=len(self._entries),
            timestamp=self._clock(),
            name=name,
            params=tuple(params.items()),
        )
        self._entries.append(note)
        for subscriber in self._subscribers:
            try:
                subscriber(note)
            except Exception as e:
                self.failed_deliveries.append((note, e))
                if self.verbose:
                    print(f"⚠️  SUBSCRIBER FAILED: {note.name} #{note.sequence}: {e!r}")
        return note

    def named(self, name: str) -> List[Notification]:
        return [n for n in self._entries if n.name == name]

    def last(self) -> Notification:
        if not self._entries:
            raise LookupError("No notifications emitted")
        return self._entries[-1]

    def entries(self) -> Tuple[Notification, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Notification]:
        return iter(tuple(self._entries))

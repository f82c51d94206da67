"""
gateway.py - External fund transfer

The bank never moves money out of custody itself; it asks a FundsGateway to
send an amount to a recipient and learns only whether that succeeded. The
gateway is the point where control leaves the bank, so it is also the point
where a recipient can call back into the bank (re-entrancy).

InMemoryGateway is the reference implementation used by the demo and the
tests. Recipients can be given a receive hook that runs during the transfer,
or be marked as rejecting so every transfer to them fails.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Callable, Dict, List, Protocol, Set, Tuple, runtime_checkable

from .core import AccountId, BankingError


@runtime_checkable
class FundsGateway(Protocol):
    """
    Outbound fund transfer.

    transfer() returns False when the recipient refused the funds. It must
    not raise for a refusal; exceptions are reserved for programming errors.
    """

    def transfer(self, recipient: AccountId, amount: int) -> bool:
        ...


# Hook signature: (recipient, amount) -> None. Raising BankingError refuses the funds.
ReceiveHook = Callable[[AccountId, int], None]


class InMemoryGateway:
    """
    Gateway that keeps external balances in memory.

    A transfer credits the recipient, then runs its receive hook. If the hook
    raises a BankingError the credit is undone and the transfer reports
    failure, which is how a refusing recipient looks to the sender.

    Example:
        gateway = InMemoryGateway()
        gateway.on_receive("mallory", lambda who, amount: bank.withdraw(who, amount))
    """

    def __init__(self):
        self.received: Dict[AccountId, int] = defaultdict(int)
        self.transfers: List[Tuple[AccountId, int]] = []
        self._hooks: Dict[AccountId, ReceiveHook] = {}
        self._rejecting: Set[AccountId] = set()

    def on_receive(self, recipient: AccountId, hook: ReceiveHook) -> None:
        self._hooks[recipient] = hook

    def reject(self, recipient: AccountId, rejecting: bool = True) -> None:
        """Make every transfer to recipient fail (or stop failing)."""
        if rejecting:
            self._rejecting.add(recipient)
        else:
            self._rejecting.discard(recipient)

    def balance_of(self, recipient: AccountId) -> int:
        return self.received.get(recipient, 0)

    def total_sent(self) -> int:
        return sum(amount for _, amount in self.transfers)

    def transfer(self, recipient: AccountId, amount: int) -> bool:
        if recipient in self._rejecting:
            return False

        self.received[recipient] += amount
        hook = self._hooks.get(recipient)
        if hook is not None:
            try:
                hook(recipient, amount)
            except BankingError:
                self.received[recipient] -= amount
                return False
            except Exception:
                self.received[recipient] -= amount
                raise
        self.transfers.append((recipient, amount))
        return True

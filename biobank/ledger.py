"""
ledger.py - Custodial Balance Ledger

The Ledger holds the funds each account has deposited with the bank. It is
the only module that changes balances, and every change is one of three
kinds: a deposit (credit), a withdrawal (debit paid out to the owner) or a
payout (debit paid out to a third party by a completed transaction).

Key responsibilities:
    - Credits and debits in integer base units, never below zero or above MAX_BALANCE
    - Withdrawals that are atomic across debit-and-transfer
    - Snapshot/restore so fund-moving operations can roll back completely
    - Conservation check: sum(balances) == deposited - withdrawn - paid_out
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List

from .core import (
    # Types
    AccountId, BalanceMap,
    # Constants
    MAX_BALANCE, WITHDRAWN,
    # Exceptions
    BalanceOverflow, InsufficientBalance, WithdrawFailed,
    # Helpers
    require_amount,
)
from .events import NotificationLog
from .gateway import FundsGateway
from .guard import ReentrancyGuard


# Debit kinds, tracked separately for the conservation check.
DEBIT_WITHDRAWAL = "withdrawal"
DEBIT_PAYOUT = "payout"


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """Point-in-time copy of all ledger state, used for rollback."""
    balances: Dict[AccountId, int]
    deposited: int
    withdrawn: int
    paid_out: int


class Ledger:
    """
    Per-account custodial balances with guarded withdrawal.

    The guard passed in is the bank instance's single ReentrancyGuard; the
    workflow's completion holds the same guard, so a recipient calling back
    during any outbound transfer is rejected.

    Thread Safety:
        Not thread-safe on its own. BiometricBank serializes all mutating calls.

    Example:
        ledger = Ledger("main", InMemoryGateway(), ReentrancyGuard(), notifications)
        ledger.deposit("alice", 1_000)
        ledger.withdraw("alice", 400)
        ledger.balance_of("alice")  # 600
    """

    def __init__(
        self,
        name: str,
        gateway: FundsGateway,
        guard: ReentrancyGuard,
        notifications: NotificationLog,
        verbose: bool = True,
    ):
        self.name = name
        self.gateway = gateway
        self.guard = guard
        self.notifications = notifications
        self.verbose = verbose
        self._balances: BalanceMap = {}
        self.total_deposited = 0
        self.total_withdrawn = 0
        self.total_paid_out = 0

    # ========================================================================
    # READ-ONLY
    # ========================================================================

    def balance_of(self, account: AccountId) -> int:
        return self._balances.get(account, 0)

    def balances(self) -> BalanceMap:
        """Non-zero balances by account."""
        return {a: b for a, b in self._balances.items() if b}

    def total_balance(self) -> int:
        """Sum of all balances, in sorted account order for determinism."""
        return sum(self._balances[a] for a in sorted(self._balances))

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Check that custody equals everything that came in minus everything that left.

        Returns:
            Dict with keys:
            - 'valid': bool - True if the books balance and no balance is negative
            - 'total': int - current sum of balances
            - 'expected': int - deposited - withdrawn - paid_out
            - 'deposited', 'withdrawn', 'paid_out': running totals
            - 'negative': list of accounts with a negative balance
        """
        total = self.total_balance()
        expected = self.total_deposited - self.total_withdrawn - self.total_paid_out
        negative: List[AccountId] = sorted(a for a, b in self._balances.items() if b < 0)
        return {
            'valid': total == expected and not negative,
            'total': total,
            'expected': expected,
            'deposited': self.total_deposited,
            'withdrawn': self.total_withdrawn,
            'paid_out': self.total_paid_out,
            'negative': negative,
        }

    # ========================================================================
    # MUTATING
    # ========================================================================

    def deposit(self, account: AccountId, amount: int) -> int:
        """
        Credit amount to account.

        Returns:
            The new balance

        Raises:
            ValueError: If account is empty or amount is not a positive int
            BalanceOverflow: If the balance would exceed MAX_BALANCE
        """
        if not account or not account.strip():
            raise ValueError("account cannot be empty")
        require_amount(amount, "Deposit amount")
        new_balance = self.credit(account, amount)
        self.total_deposited += amount
        if self.verbose:
            print(f"✓ DEPOSIT: {account} +{amount} (balance {new_balance})")
        return new_balance

    def receive(self, account: AccountId, amount: int) -> int:
        """Implicit deposit on plain fund receipt."""
        return self.deposit(account, amount)

    def withdraw(self, account: AccountId, amount: int) -> int:
        """
        Pay amount from account's balance back to account.

        The balance is debited before the transfer runs, so a callback during
        the transfer sees the reduced balance; the held guard rejects it anyway.
        If the transfer fails, all ledger state is restored.

        Returns:
            The new balance

        Raises:
            ReentrantCall: If a fund-moving operation is already in progress
            InsufficientBalance: If the balance is less than amount
            WithdrawFailed: If the transfer was refused (state rolled back)
        """
        require_amount(amount, "Withdrawal amount")
        with self.guard.hold("withdraw"):
            snapshot = self.snapshot()
            self.debit(account, amount, DEBIT_WITHDRAWAL)
            try:
                sent = self.gateway.transfer(account, amount)
            except Exception:
                self.restore(snapshot)
                raise
            if not sent:
                self.restore(snapshot)
                if self.verbose:
                    print(f"✗ REJECTED: withdraw {amount} to {account}: transfer failed")
                raise WithdrawFailed(
                    f"Transfer of {amount} to {account} failed",
                    account=account, amount=amount,
                )
            new_balance = self.balance_of(account)

        if self.verbose:
            print(f"✓ WITHDRAW: {account} -{amount} (balance {new_balance})")
        self.notifications.emit(WITHDRAWN, account=account, amount=amount)
        return new_balance

    def credit(self, account: AccountId, amount: int) -> int:
        """Add amount to a balance, failing closed on overflow."""
        current = self._balances.get(account, 0)
        if current + amount > MAX_BALANCE:
            if self.verbose:
                print(f"✗ REJECTED: credit {amount} to {account}: balance overflow")
            raise BalanceOverflow(
                f"Balance of {account} would exceed maximum",
                account=account, amount=amount,
            )
        self._balances[account] = current + amount
        return self._balances[account]

    def debit(self, account: AccountId, amount: int, kind: str = DEBIT_WITHDRAWAL) -> int:
        """
        Remove amount from a balance and count it as a withdrawal or payout.

        Raises:
            InsufficientBalance: If the balance is less than amount
            ValueError: If kind is unknown
        """
        if kind not in (DEBIT_WITHDRAWAL, DEBIT_PAYOUT):
            raise ValueError(f"Unknown debit kind: {kind}")
        current = self._balances.get(account, 0)
        if current < amount:
            if self.verbose:
                print(f"✗ REJECTED: debit {amount} from {account}: balance {current}")
            raise InsufficientBalance(
                f"{account} has {current}, needs {amount}",
                account=account, balance=current, amount=amount,
            )
        self._balances[account] = current - amount
        if kind == DEBIT_WITHDRAWAL:
            self.total_withdrawn += amount
        else:
            self.total_paid_out += amount
        return self._balances[account]

    # ========================================================================
    # ROLLBACK
    # ========================================================================

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            balances=dict(self._balances),
            deposited=self.total_deposited,
            withdrawn=self.total_withdrawn,
            paid_out=self.total_paid_out,
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        """Put every balance and running total back to a snapshot."""
        self._balances = dict(snapshot.balances)
        self.total_deposited = snapshot.deposited
        self.total_withdrawn = snapshot.withdrawn
        self.total_paid_out = snapshot.paid_out

"""
bank.py - BiometricBank, one self-contained bank instance

BiometricBank is what callers talk to. It turns "who is calling" into the
capabilities the components expect (administrator or not, which account),
owns the logical clock, and serializes every mutating call. Under it sit:

    IdentityRegistry   account <-> userId bindings
    Ledger             custodial balances, deposit and guarded withdraw
    TransactionStore   authorization records and per-user logs
    TransactionWorkflow  initiate -> verify -> complete
    NotificationLog    audit trail of everything emitted

A single ReentrancyGuard is shared by Ledger.withdraw and
TransactionWorkflow.complete. The serializer is an RLock: other threads
wait their turn, while a callback on the same thread (a recipient reacting
to a transfer) gets through the serializer and is stopped by the guard,
whichever mutating method it calls."""

from __future__ import annotations
from datetime import datetime, timedelta
from functools import wraps
import threading
from typing import Any, Dict, Optional, Tuple

from .core import (
    AccountId, TransactionRecord,
    ADMIN_TRANSFERRED,
    AdminOnly, BankingError, ReentrantCall,
)
from .events import Notification, NotificationLog, Subscriber
from .gateway import FundsGateway, InMemoryGateway
from .guard import ReentrancyGuard
from .ledger import Ledger
from .registry import IdentityRegistry
from .store import TransactionStore
from .workflow import TransactionWorkflow


def serialized(method):
    """
    Run a mutating method while holding the instance serializer.

    A call arriving while a fund transfer holds the guard can only come from
    that transfer's callback (other threads wait on the serializer), and is
    rejected before it changes anything.
    """
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._mutex:
            try:
                self.guard.ensure_free(method.__name__)
            except ReentrantCall as e:
                self._reject(e)
            return method(self, *args, **kwargs)
    return wrapper


class BiometricBank:
    """
    A bank instance: custodial balances plus biometric-gated fund release.

    Configuration is by keyword argument; there are no config files.

    Example:
        bank = BiometricBank("main", admin="owner", verbose=False)
        bank.register_user("0xa1", "u1")
        bank.deposit("0xa1", to_base_units("1.0"))
        bank.initiate_transaction("owner", "t1", "u1", "rent",
                                  to_base_units("0.5"), "scan", bank.time_from_now(3600))
        bank.verify_transaction("0xa1", "t1", "u1", "scan")
        bank.complete_transaction("owner", "t1", "0xr")
    """

    def __init__(
        self,
        name: str,
        admin: AccountId,
        gateway: Optional[FundsGateway] = None,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        require_registered_user: bool = False,
    ):
        """
        Create a bank instance.

        Args:
            name: Instance identifier
            admin: Account allowed to initiate and complete transactions
            gateway: Outbound fund transfer (default: a fresh InMemoryGateway)
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Print a line for every accepted or rejected operation (default: True)
            require_registered_user: Reject initiation for unbound user ids
                                     instead of creating the record (default: False)
        """
        if not admin or not admin.strip():
            raise ValueError("admin cannot be empty")
        self.name = name
        self.verbose = verbose
        self._admin = admin
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self._mutex = threading.RLock()

        self.gateway: FundsGateway = gateway if gateway is not None else InMemoryGateway()
        self.guard = ReentrancyGuard(name)
        self.notification_log = NotificationLog(clock=self._now, verbose=verbose)
        self.registry = IdentityRegistry()
        self.ledger = Ledger(name, self.gateway, self.guard, self.notification_log, verbose)
        self.store = TransactionStore()
        self.workflow = TransactionWorkflow(
            self.registry, self.ledger, self.store, self.notification_log,
            clock=self._now,
            verbose=verbose,
            require_registered_user=require_registered_user,
        )

    def _reject(self, error):
        if self.verbose:
            print(f"✗ REJECTED: {error}")
        raise error

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def _now(self) -> datetime:
        return self._current_time

    @property
    def current_time(self) -> datetime:
        """Current logical time of the bank."""
        return self._current_time

    @serialized
    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the logical clock. Time can only move forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    @serialized
    def advance_seconds(self, seconds: float) -> datetime:
        self.advance_time(self._current_time + timedelta(seconds=seconds))
        return self._current_time

    def time_from_now(self, seconds: float) -> datetime:
        """Deadline helper: current time plus seconds."""
        return self._current_time + timedelta(seconds=seconds)

    # ========================================================================
    # ADMINISTRATOR ROLE
    # ========================================================================

    @property
    def admin(self) -> AccountId:
        return self._admin

    def is_admin(self, account: AccountId) -> bool:
        return account == self._admin

    @serialized
    def transfer_admin(self, caller: AccountId, new_admin: AccountId) -> None:
        """
        Hand the administrator role to another account.

        Raises:
            AdminOnly: If caller is not the current administrator
            ValueError: If new_admin is empty
        """
        if not self.is_admin(caller):
            self._reject(AdminOnly("transfer_admin requires the administrator", caller=caller))
        if not new_admin or not new_admin.strip():
            raise ValueError("new_admin cannot be empty")
        previous, self._admin = self._admin, new_admin
        if self.verbose:
            print(f"✓ ADMIN: {previous} → {new_admin}")
        self.notification_log.emit(ADMIN_TRANSFERRED, previous=previous, new_admin=new_admin)

    # ========================================================================
    # IDENTITY
    # ========================================================================

    @serialized
    def register_user(self, caller: AccountId, user_id: str) -> None:
        try:
            self.registry.register(caller, user_id)
        except BankingError as e:
            self._reject(e)
        if self.verbose:
            print(f"📝 Registered: {user_id} → {caller}")

    def resolve(self, user_id: str) -> Optional[AccountId]:
        return self.registry.resolve(user_id)

    def user_id_of(self, account: AccountId) -> Optional[str]:
        return self.registry.user_id_of(account)

    # ========================================================================
    # FUNDS
    # ========================================================================

    @serialized
    def deposit(self, caller: AccountId, amount: int) -> int:
        return self.ledger.deposit(caller, amount)

    @serialized
    def receive(self, caller: AccountId, amount: int) -> int:
        return self.ledger.receive(caller, amount)

    @serialized
    def withdraw(self, caller: AccountId, amount: int) -> int:
        return self.ledger.withdraw(caller, amount)

    def balance_of(self, account: AccountId) -> int:
        return self.ledger.balance_of(account)

    def verify_conservation(self) -> Dict[str, Any]:
        return self.ledger.verify_conservation()

    # ========================================================================
    # TRANSACTION WORKFLOW
    # ========================================================================

    @serialized
    def initiate_transaction(
        self,
        caller: AccountId,
        txn_id: str,
        user_id: str,
        description: str,
        amount: int,
        secret: str,
        expires_at: datetime,
    ) -> TransactionRecord:
        return self.workflow.initiate(
            self.is_admin(caller), txn_id, user_id, description, amount, secret, expires_at
        )

    @serialized
    def verify_transaction(self, caller: AccountId, txn_id: str, user_id: str, secret: str) -> bool:
        return self.workflow.verify(caller, txn_id, user_id, secret)

    @serialized
    def complete_transaction(self, caller: AccountId, txn_id: str, recipient: AccountId) -> TransactionRecord:
        return self.workflow.complete(self.is_admin(caller), txn_id, recipient)

    def get_transaction(self, txn_id: str) -> TransactionRecord:
        return self.workflow.get_transaction(txn_id)

    def get_user_transaction_log(self, user_id: str) -> Tuple[str, ...]:
        return self.workflow.get_user_transaction_log(user_id)

    def get_user_balance(self, user_id: str) -> int:
        return self.workflow.get_user_balance(user_id)

    # ========================================================================
    # NOTIFICATIONS
    # ========================================================================

    @property
    def notifications(self) -> Tuple[Notification, ...]:
        return self.notification_log.entries()

    def subscribe(self, subscriber: Subscriber) -> None:
        self.notification_log.subscribe(subscriber)

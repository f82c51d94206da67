"""
workflow.py - Transaction Authorization State Machine

Drives each transaction through the three-step release protocol:

    Uninitiated --initiate--> Pending --verify--> Verified --complete--> Completed

initiate (administrator): records the amount, the deadline and a one-way
    commitment of the owner's secret.
verify (owning account): presents the secret before the deadline. A late
    attempt marks the record expired and fails; a wrong secret fails without
    any change and may be retried.
complete (administrator): the only step that touches the Ledger. Debits the
    owner, marks the record completed, then transfers to the recipient, all
    while holding the bank's ReentrancyGuard. A failed transfer restores the
    debit and the completed flag together.

The expired flag is informational: it is only set by a failed verify, and a
record that was verified before its deadline can still be completed.
"""

from __future__ import annotations
from datetime import datetime
from typing import Callable, Optional, Tuple

from .core import (
    # Types
    AccountId, TransactionRecord,
    # Notification names
    TRANSACTION_COMPLETED, TRANSACTION_FAILED, TRANSACTION_INITIATED, TRANSACTION_VERIFIED,
    # Exceptions
    AdminOnly, InsufficientBalance, TransactionAlreadyCompleted, TransactionAlreadyExists,
    TransactionDataMismatch, TransactionExpired, TransactionNotFound, TransactionNotVerified,
    TransferFailed, Unauthorized, UserNotRegistered,
    # Helpers
    commit_secret,
)
from .events import NotificationLog
from .ledger import DEBIT_PAYOUT, Ledger
from .registry import IdentityRegistry
from .store import TransactionStore


class TransactionWorkflow:
    """
    Orchestrates initiate / verify / complete over the registry, store and ledger.

    Administrator capability is passed in explicitly as caller_is_admin; the
    bank facade derives it from the caller's identity.
    """

    def __init__(
        self,
        registry: IdentityRegistry,
        ledger: Ledger,
        store: TransactionStore,
        notifications: NotificationLog,
        clock: Callable[[], datetime],
        verbose: bool = True,
        require_registered_user: bool = False,
    ):
        self.registry = registry
        self.ledger = ledger
        self.store = store
        self.notifications = notifications
        self.clock = clock
        self.verbose = verbose
        self.require_registered_user = require_registered_user

    def _reject(self, error):
        if self.verbose:
            print(f"✗ REJECTED: {error}")
        raise error

    # ========================================================================
    # STEP 1: INITIATE
    # ========================================================================

    def initiate(
        self,
        caller_is_admin: bool,
        txn_id: str,
        user_id: str,
        description: str,
        amount: int,
        secret: str,
        expires_at: datetime,
    ) -> TransactionRecord:
        """
        Create a Pending transaction for user_id.

        Returns:
            The stored record

        Raises:
            AdminOnly: If the caller is not the administrator
            ValueError: If txn_id/user_id is empty, amount is not positive,
                        or expires_at is not a datetime
            TransactionAlreadyExists: If txn_id was initiated before
            UserNotRegistered: If user_id is unbound and registration is required
        """
        if not caller_is_admin:
            self._reject(AdminOnly("initiate requires the administrator", txn_id=txn_id))
        if not isinstance(expires_at, datetime):
            raise ValueError(f"expires_at must be datetime, got {type(expires_at)}")
        if self.store.exists(txn_id):
            self._reject(TransactionAlreadyExists(
                f"Transaction {txn_id} already exists", txn_id=txn_id
            ))
        if self.registry.resolve(user_id) is None:
            if self.require_registered_user:
                self._reject(UserNotRegistered(
                    f"UserId {user_id} is not registered", user_id=user_id
                ))
            if self.verbose:
                print(f"⚠️  UNREGISTERED USER: {txn_id} created for {user_id}")

        record = TransactionRecord(
            txn_id=txn_id,
            user_id=user_id,
            description=description,
            amount=amount,
            secret_commitment=commit_secret(secret),
            created_at=self.clock(),
            expires_at=expires_at,
        )
        self.store.insert(record)

        if self.verbose:
            print(f"✓ INITIATED: {txn_id} for {user_id}, amount {amount}, expires {expires_at}")
        self.notifications.emit(TRANSACTION_INITIATED, user_id=user_id, txn_id=txn_id)
        return record

    # ========================================================================
    # STEP 2: VERIFY
    # ========================================================================

    def verify(self, caller: AccountId, txn_id: str, user_id: str, secret: str) -> bool:
        """
        Present the secret for a Pending (or already Verified) transaction.

        A verification attempt past the deadline sets expired=True and emits
        TransactionFailed before raising; that change is kept.

        Raises:
            Unauthorized: If caller is not the account bound to user_id, or the
                          transaction belongs to another user
            TransactionNotFound: If txn_id was never initiated
            TransactionAlreadyCompleted: If the transaction is completed
            TransactionExpired: If now is past expires_at
            TransactionDataMismatch: If the secret does not match the commitment
        """
        owner = self.registry.resolve(user_id)
        if owner is None or owner != caller:
            self._reject(Unauthorized(
                f"{caller} is not the account bound to {user_id}",
                caller=caller, user_id=user_id,
            ))

        record = self.store.get(txn_id)
        if not record.exists:
            self._reject(TransactionNotFound(f"Transaction {txn_id} not found", txn_id=txn_id))
        if record.user_id != user_id:
            self._reject(Unauthorized(
                f"Transaction {txn_id} does not belong to {user_id}",
                caller=caller, user_id=user_id, txn_id=txn_id,
            ))
        if record.completed:
            self._reject(TransactionAlreadyCompleted(
                f"Transaction {txn_id} already completed", txn_id=txn_id
            ))

        now = self.clock()
        if record.is_past_deadline(now):
            self.store.replace(record.with_changes(expired=True))
            self.notifications.emit(
                TRANSACTION_FAILED, user_id=user_id, txn_id=txn_id, reason="expired"
            )
            self._reject(TransactionExpired(
                f"Transaction {txn_id} expired at {record.expires_at}",
                txn_id=txn_id, expires_at=record.expires_at, now=now,
            ))

        if not record.matches(secret):
            self._reject(TransactionDataMismatch(
                f"Secret does not match commitment for {txn_id}", txn_id=txn_id
            ))

        self.store.replace(record.with_changes(verified=True))
        if self.verbose:
            print(f"✓ VERIFIED: {txn_id} by {caller}")
        self.notifications.emit(TRANSACTION_VERIFIED, user_id=user_id, txn_id=txn_id)
        return True

    # ========================================================================
    # STEP 3: COMPLETE
    # ========================================================================

    def complete(self, caller_is_admin: bool, txn_id: str, recipient: AccountId) -> TransactionRecord:
        """
        Release a verified transaction's amount from the owner's balance to recipient.

        Debit and completed flag are applied before the transfer so that any
        callback during the transfer observes them; the held guard rejects
        such a callback outright. If the transfer fails, both are undone.

        Returns:
            The completed record

        Raises:
            AdminOnly: If the caller is not the administrator
            ValueError: If recipient is empty
            ReentrantCall: If a fund-moving operation is already in progress
            TransactionNotFound: If txn_id was never initiated
            TransactionNotVerified: If the transaction was not verified
            TransactionAlreadyCompleted: If the transaction is completed
            InsufficientBalance: If the owner's balance is less than amount
            TransferFailed: If the transfer was refused (state rolled back)
        """
        if not caller_is_admin:
            self._reject(AdminOnly("complete requires the administrator", txn_id=txn_id))
        if not recipient or not recipient.strip():
            raise ValueError("recipient cannot be empty")

        with self.ledger.guard.hold("complete"):
            record = self.store.get(txn_id)
            if not record.exists:
                self._reject(TransactionNotFound(f"Transaction {txn_id} not found", txn_id=txn_id))
            if not record.verified:
                self._reject(TransactionNotVerified(
                    f"Transaction {txn_id} not verified", txn_id=txn_id
                ))
            if record.completed:
                self._reject(TransactionAlreadyCompleted(
                    f"Transaction {txn_id} already completed", txn_id=txn_id
                ))

            owner = self.registry.resolve(record.user_id)
            balance = self.ledger.balance_of(owner) if owner is not None else 0
            if owner is None or balance < record.amount:
                self._reject(InsufficientBalance(
                    f"{record.user_id} has {balance}, needs {record.amount}",
                    user_id=record.user_id, balance=balance, amount=record.amount,
                ))

            snapshot = self.ledger.snapshot()
            self.ledger.debit(owner, record.amount, DEBIT_PAYOUT)
            completed = record.with_changes(completed=True)
            previous = self.store.replace(completed)
            try:
                sent = self.ledger.gateway.transfer(recipient, record.amount)
            except Exception:
                self.ledger.restore(snapshot)
                self.store.replace(previous)
                raise
            if not sent:
                self.ledger.restore(snapshot)
                self.store.replace(previous)
                self._reject(TransferFailed(
                    f"Transfer of {record.amount} to {recipient} failed",
                    txn_id=txn_id, recipient=recipient, amount=record.amount,
                ))

        if self.verbose:
            print(repr(completed))
            print(f"✓ COMPLETED: {txn_id} paid {record.amount} to {recipient}")
        self.notifications.emit(
            TRANSACTION_COMPLETED,
            user_id=record.user_id, txn_id=txn_id, amount=record.amount, recipient=recipient,
        )
        return completed

    # ========================================================================
    # READ-ONLY PROJECTIONS
    # ========================================================================

    def get_transaction(self, txn_id: str) -> TransactionRecord:
        return self.store.get(txn_id)

    def get_user_transaction_log(self, user_id: str) -> Tuple[str, ...]:
        return self.store.log_for(user_id)

    def get_user_balance(self, user_id: str) -> int:
        owner: Optional[AccountId] = self.registry.resolve(user_id)
        if owner is None:
            return 0
        return self.ledger.balance_of(owner)

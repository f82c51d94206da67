"""
Core types and pure functions for the biometric banking system.

This module provides the foundational data structures shared by every component:
1. Constants: unit precision, balance width, commitment algorithm
2. Exceptions: BankingError and the domain-specific error taxonomy
3. Immutable data structures: TransactionRecord
4. Pure helpers: secret commitment, unit conversion, amount validation

Nothing in this module holds or mutates state. The stateful components
(IdentityRegistry, Ledger, TransactionStore, TransactionWorkflow) live in
their own modules and import from here.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
import hashlib
from typing import Any, Dict, Optional


# ============================================================================
# CONSTANTS
# ============================================================================

# Balances are held in the smallest currency unit. One display unit
# ("1.0") is 10**UNIT_DECIMALS base units.
UNIT_DECIMALS = 18

# Largest balance an account may hold. Credits past this fail closed.
MAX_BALANCE = 2 ** 256 - 1

# Hash used for secret commitments.
COMMITMENT_ALGORITHM = "sha256"

# Notification names.
TRANSACTION_INITIATED = "TransactionInitiated"
TRANSACTION_VERIFIED = "TransactionVerified"
TRANSACTION_COMPLETED = "TransactionCompleted"
TRANSACTION_FAILED = "TransactionFailed"
WITHDRAWN = "Withdrawn"
ADMIN_TRANSFERRED = "AdminTransferred"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Opaque caller identity (address-equivalent).
AccountId = str

# Mapping from account to balance in base units.
BalanceMap = Dict[AccountId, int]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class BankingError(Exception):
    """
    Base exception for all business-rule failures.

    Attributes:
        error_code: Stable name of the failure (the class name by default)
        context: Extra keyword details about the rejected call
    """

    def __init__(self, message: str = "", **context: Any):
        self.error_code = type(self).__name__
        self.context = context
        super().__init__(message or self.error_code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error_code': self.error_code,
            'message': str(self),
            'context': dict(self.context),
        }


class Unauthorized(BankingError):
    """Raised when the caller is not allowed to perform the operation."""
    pass


class AdminOnly(Unauthorized):
    """Raised when a non-administrator calls an administrator operation."""
    pass


class AlreadyRegistered(BankingError):
    """Raised when an account that already has a binding registers again."""
    pass


class UserIdTaken(BankingError):
    """Raised when a userId is already bound to a different account."""
    pass


class UserNotRegistered(BankingError):
    """Raised when a userId does not resolve to any account (strict mode only)."""
    pass


class TransactionAlreadyExists(BankingError):
    pass


class TransactionAlreadyCompleted(BankingError):
    pass


class TransactionNotVerified(BankingError):
    pass


class TransactionNotFound(BankingError):
    pass


class TransactionExpired(BankingError):
    """Raised when verification is attempted after the transaction's deadline."""
    pass


class TransactionDataMismatch(BankingError):
    """Raised when the presented secret does not match the recorded commitment."""
    pass


class InsufficientBalance(BankingError):
    """Raised when a debit would take an account balance below zero."""
    pass


class BalanceOverflow(BankingError):
    """Raised when a credit would push an account balance past MAX_BALANCE."""
    pass


class TransferFailed(BankingError):
    """Raised when the external fund transfer reports failure."""
    pass


class WithdrawFailed(TransferFailed):
    """Raised when the transfer backing a withdrawal fails."""
    pass


class ReentrantCall(BankingError):
    """Raised when a guarded operation is entered while the guard is held."""
    pass


# ============================================================================
# PURE HELPERS
# ============================================================================

def commit_secret(secret: str) -> str:
    """
    Compute the one-way commitment of a secret.

    The secret is UTF-8 encoded and hashed; the hex digest is stored on the
    transaction and compared at verification time. The secret itself is
    never stored.
    """
    if not isinstance(secret, str):
        raise ValueError(f"secret must be str, got {type(secret)}")
    return hashlib.new(COMMITMENT_ALGORITHM, secret.encode("utf-8")).hexdigest()


def require_amount(amount: int, what: str = "amount") -> int:
    """Validate a base-unit amount: a positive int within MAX_BALANCE."""
    # bool is an int subclass; True is not an amount
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"{what} must be int base units, got {type(amount)}")
    if amount <= 0:
        raise ValueError(f"{what} must be positive, got {amount}")
    if amount > MAX_BALANCE:
        raise ValueError(f"{what} exceeds maximum balance")
    return amount


def to_base_units(value: Any, decimals: int = UNIT_DECIMALS) -> int:
    """
    Convert a display amount to integer base units.

    Accepts str, int or Decimal. Floats are rejected to avoid binary rounding.
    Fractions below one base unit are not allowed.

    Example:
        to_base_units("0.5") == 500_000_000_000_000_000
    """
    if isinstance(value, float):
        raise ValueError("Use str or Decimal for display amounts, not float")
    with localcontext() as ctx:
        # Wide enough for MAX_BALANCE (78 digits) without rounding
        ctx.prec = 100
        try:
            d = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}")
        if d.is_nan() or d.is_infinite():
            raise ValueError(f"Amount must be finite, got {value!r}")
        scaled = d.scaleb(decimals)
        if scaled != scaled.to_integral_value(rounding=ROUND_DOWN):
            raise ValueError(f"{value!r} has more than {decimals} decimal places")
        return int(scaled)


def from_base_units(amount: int, decimals: int = UNIT_DECIMALS) -> Decimal:
    """Convert integer base units back to a display Decimal."""
    with localcontext() as ctx:
        ctx.prec = 100
        return Decimal(amount).scaleb(-decimals)


# ============================================================================
# TRANSACTION RECORD
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """
    Immutable snapshot of one authorization transaction.

    Transitions never mutate a record; the workflow builds the next
    state with ``dataclasses.replace`` and stores it in place of the old one.

    Attributes:
        txn_id: Externally supplied unique identifier
        user_id: Owner of the funds being released
        description: Free-form text supplied by the administrator
        amount: Amount to release in base units (positive for existing records)
        secret_commitment: Hex digest of the expected secret
        verified: True once the owner presented the matching secret
        completed: True once funds were released (terminal)
        expired: Set by a verification attempt after the deadline
        created_at: Logical time of initiation
        expires_at: Deadline for verification
        exists: False only for the empty projection of an unknown id
    """
    txn_id: str
    user_id: str = ""
    description: str = ""
    amount: int = 0
    secret_commitment: str = ""
    verified: bool = False
    completed: bool = False
    expired: bool = False
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    exists: bool = field(default=True)

    def __post_init__(self):
        if not self.exists:
            return
        if not self.txn_id or not self.txn_id.strip():
            raise ValueError("Transaction id cannot be empty")
        if not self.user_id or not self.user_id.strip():
            raise ValueError("Transaction user_id cannot be empty")
        require_amount(self.amount, "Transaction amount")
        if self.completed and not self.verified:
            raise ValueError("A completed transaction must be verified")

    @classmethod
    def missing(cls, txn_id: str) -> TransactionRecord:
        """Empty projection returned for ids that were never initiated."""
        return cls(txn_id=txn_id, exists=False)

    @property
    def status(self) -> str:
        if not self.exists:
            return "UNINITIATED"
        if self.completed:
            return "COMPLETED"
        if self.verified:
            return "VERIFIED"
        return "PENDING"

    def is_past_deadline(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at

    def matches(self, secret: str) -> bool:
        return commit_secret(secret) == self.secret_commitment

    def with_changes(self, **changes: Any) -> TransactionRecord:
        """Return the next state of this record. Completed records are frozen."""
        if self.completed:
            raise TransactionAlreadyCompleted(
                f"Transaction {self.txn_id} is completed", txn_id=self.txn_id
            )
        return replace(self, **changes)

    def __repr__(self) -> str:
        w = 72
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        if not self.exists:
            return f"TransactionRecord({self.txn_id!r}, uninitiated)"
        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.txn_id + ' [' + self.status + ']')}│",
            f"├{bar}┤",
            f"│{pad('   user_id     : ' + self.user_id)}│",
            f"│{pad('   description : ' + self.description)}│",
            f"│{pad('   amount      : ' + str(self.amount))}│",
            f"│{pad('   commitment  : ' + self.secret_commitment[:16] + '...')}│",
            f"│{pad('   created_at  : ' + str(self.created_at))}│",
            f"│{pad('   expires_at  : ' + str(self.expires_at))}│",
            f"│{pad('   expired     : ' + str(self.expired))}│",
            f"└{bar}┘",
        ]
        return "\n".join(lines)

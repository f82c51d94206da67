"""
biobank - Biometric-Gated Fund Release

A custodial balance ledger with an administrator-mediated release protocol:
funds leave a user's balance for a third party only after the user presents
a secret (biometric data) matching the commitment recorded at initiation.

Usage:
    from biobank import BiometricBank, to_base_units

    bank = BiometricBank("main", admin="owner")
    bank.register_user("0xa1", "u1")
    bank.deposit("0xa1", to_base_units("1.0"))

    # Administrator records the request and the expected secret
    bank.initiate_transaction("owner", "t1", "u1", "invoice 42",
                              to_base_units("0.5"), "scan-data", bank.time_from_now(3600))

    # The user proves possession of the secret
    bank.verify_transaction("0xa1", "t1", "u1", "scan-data")

    # Administrator releases the funds
    bank.complete_transaction("owner", "t1", "0xrecipient")
"""

# Core types
from .core import (
    AccountId,
    BalanceMap,
    TransactionRecord,
    commit_secret,
    require_amount,
    to_base_units,
    from_base_units,
    UNIT_DECIMALS,
    MAX_BALANCE,
    COMMITMENT_ALGORITHM,
    TRANSACTION_INITIATED,
    TRANSACTION_VERIFIED,
    TRANSACTION_COMPLETED,
    TRANSACTION_FAILED,
    WITHDRAWN,
    ADMIN_TRANSFERRED,
    # Exceptions
    BankingError,
    Unauthorized,
    AdminOnly,
    AlreadyRegistered,
    UserIdTaken,
    UserNotRegistered,
    TransactionAlreadyExists,
    TransactionAlreadyCompleted,
    TransactionNotVerified,
    TransactionNotFound,
    TransactionExpired,
    TransactionDataMismatch,
    InsufficientBalance,
    BalanceOverflow,
    TransferFailed,
    WithdrawFailed,
    ReentrantCall,
)

# Components
from .guard import ReentrancyGuard
from .registry import IdentityRegistry
from .gateway import FundsGateway, InMemoryGateway, ReceiveHook
from .events import Notification, NotificationLog
from .ledger import Ledger, LedgerSnapshot, DEBIT_WITHDRAWAL, DEBIT_PAYOUT
from .store import TransactionStore
from .workflow import TransactionWorkflow

# Bank instance
from .bank import BiometricBank


__all__ = [
    # Core
    'AccountId', 'BalanceMap', 'TransactionRecord',
    'commit_secret', 'require_amount', 'to_base_units', 'from_base_units',
    'UNIT_DECIMALS', 'MAX_BALANCE', 'COMMITMENT_ALGORITHM',
    'TRANSACTION_INITIATED', 'TRANSACTION_VERIFIED', 'TRANSACTION_COMPLETED',
    'TRANSACTION_FAILED', 'WITHDRAWN', 'ADMIN_TRANSFERRED',
    # Exceptions
    'BankingError', 'Unauthorized', 'AdminOnly',
    'AlreadyRegistered', 'UserIdTaken', 'UserNotRegistered',
    'TransactionAlreadyExists', 'TransactionAlreadyCompleted',
    'TransactionNotVerified', 'TransactionNotFound',
    'TransactionExpired', 'TransactionDataMismatch',
    'InsufficientBalance', 'BalanceOverflow',
    'TransferFailed', 'WithdrawFailed', 'ReentrantCall',
    # Components
    'ReentrancyGuard', 'IdentityRegistry',
    'FundsGateway', 'InMemoryGateway', 'ReceiveHook',
    'Notification', 'NotificationLog',
    'Ledger', 'LedgerSnapshot', 'DEBIT_WITHDRAWAL', 'DEBIT_PAYOUT',
    'TransactionStore', 'TransactionWorkflow',
    # Bank
    'BiometricBank',
]

__version__ = '1.0.0'

"""
store.py - Transaction records and per-user transaction logs

The store only keeps what it is given. Deciding which transitions are legal
is the workflow's job; the store enforces just the structural rules:
ids are unique, records are replaced only if they exist, and each id is
appended to its owner's log exactly once, when it is first inserted.
"""

from __future__ import annotations
from typing import Dict, List, Tuple

from .core import TransactionAlreadyExists, TransactionNotFound, TransactionRecord


class TransactionStore:
    """In-memory map of txn_id -> TransactionRecord plus user_id -> [txn_id]."""

    def __init__(self):
        self._records: Dict[str, TransactionRecord] = {}
        self._logs: Dict[str, List[str]] = {}

    def exists(self, txn_id: str) -> bool:
        return txn_id in self._records

    def get(self, txn_id: str) -> TransactionRecord:
        """Stored record, or the empty projection for an unknown id."""
        record = self._records.get(txn_id)
        if record is None:
            return TransactionRecord.missing(txn_id)
        return record

    def insert(self, record: TransactionRecord) -> None:
        """Add a new record and append its id to the owner's log."""
        if not record.exists:
            raise ValueError("Cannot store an uninitiated record")
        if record.txn_id in self._records:
            raise TransactionAlreadyExists(
                f"Transaction {record.txn_id} already exists", txn_id=record.txn_id
            )
        self._records[record.txn_id] = record
        self._logs.setdefault(record.user_id, []).append(record.txn_id)

    def replace(self, record: TransactionRecord) -> TransactionRecord:
        """
        Swap in the next state of an existing record.

        Returns:
            The record that was replaced (kept by callers for rollback)
        """
        previous = self._records.get(record.txn_id)
        if previous is None:
            raise TransactionNotFound(
                f"Transaction {record.txn_id} not found", txn_id=record.txn_id
            )
        if previous.user_id != record.user_id:
            raise ValueError("A transaction's user_id cannot change")
        self._records[record.txn_id] = record
        return previous

    def log_for(self, user_id: str) -> Tuple[str, ...]:
        return tuple(self._logs.get(user_id, ()))

    def ids(self) -> List[str]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

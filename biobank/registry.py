"""
registry.py - Write-once identity bindings

Maps caller accounts to human-chosen user ids and back. Both directions are
injective and a binding never changes once created.
"""

from __future__ import annotations
from typing import Dict, List, Optional

from .core import AccountId, AlreadyRegistered, UserIdTaken


class IdentityRegistry:
    """Bidirectional, uniqueness-enforcing account <-> userId binding."""

    def __init__(self):
        self._user_by_account: Dict[AccountId, str] = {}
        self._account_by_user: Dict[str, AccountId] = {}

    def register(self, account: AccountId, user_id: str) -> None:
        """
        Bind an account to a user id.

        Raises:
            ValueError: If account or user_id is empty
            AlreadyRegistered: If the account already has a binding
            UserIdTaken: If the user id belongs to another account
        """
        if not account or not account.strip():
            raise ValueError("account cannot be empty")
        if not user_id or not user_id.strip():
            raise ValueError("user_id cannot be empty")
        if account in self._user_by_account:
            raise AlreadyRegistered(
                f"Account {account} already registered as {self._user_by_account[account]}",
                account=account,
            )
        if user_id in self._account_by_user:
            raise UserIdTaken(f"UserId {user_id} already taken", user_id=user_id)
        self._user_by_account[account] = user_id
        self._account_by_user[user_id] = account

    def resolve(self, user_id: str) -> Optional[AccountId]:
        """Account bound to user_id, or None."""
        return self._account_by_user.get(user_id)

    def user_id_of(self, account: AccountId) -> Optional[str]:
        """User id bound to account, or None."""
        return self._user_by_account.get(account)

    def is_registered(self, account: AccountId) -> bool:
        return account in self._user_by_account

    def list_users(self) -> List[str]:
        return sorted(self._account_by_user)

    def __len__(self) -> int:
        return len(self._account_by_user)

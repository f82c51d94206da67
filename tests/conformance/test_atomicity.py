"""
Atomicity Conformance Tests

INVARIANT: Fund-moving operations are all-or-nothing.

    ∀ withdraw / complete W:
        W succeeds ⟹ debit, flags and transfer are all applied
        W fails ⟹ ledger, store and notifications equal their state before W

Partial application is never observable after the call returns.
"""

from datetime import datetime
from hypothesis import given, settings
from hypothesis import strategies as st

from biobank import BiometricBank, InMemoryGateway, BankingError, TransferFailed


def _state(bank):
    return (
        bank.ledger.snapshot(),
        {txn_id: bank.get_transaction(txn_id) for txn_id in bank.store.ids()},
        bank.notifications,
        sorted((u, bank.resolve(u)) for u in bank.registry.list_users()),
        bank.current_time,
    )


def _bank(gateway, amount):
    bank = BiometricBank(
        "test", admin="owner", gateway=gateway,
        initial_time=datetime(2025, 1, 1), verbose=False,
    )
    bank.register_user("0xa", "u1")
    bank.deposit("0xa", 1_000)
    bank.initiate_transaction("owner", "t1", "u1", "", amount, "s", bank.time_from_now(60))
    bank.verify_transaction("0xa", "t1", "u1", "s")
    return bank


class TestAtomicityProperties:

    @given(st.integers(min_value=1, max_value=2_000), st.booleans())
    @settings(max_examples=100)
    def test_refused_completion_leaves_no_trace(self, amount, refuse):
        """
        PROPERTY: A completion either pays in full and marks the record, or
        fails and leaves the bank exactly as it was.
        """
        gateway = InMemoryGateway()
        bank = _bank(gateway, amount)
        if refuse:
            gateway.reject("0xr")
        before = _state(bank)

        try:
            bank.complete_transaction("owner", "t1", "0xr")
            succeeded = True
        except BankingError:
            succeeded = False

        if succeeded:
            assert not refuse and amount <= 1_000
            assert bank.get_transaction("t1").completed
            assert bank.get_user_balance("u1") == 1_000 - amount
            assert gateway.balance_of("0xr") == amount
        else:
            assert _state(bank) == before
            assert gateway.balance_of("0xr") == 0
        assert not bank.guard.locked

    @given(st.integers(min_value=1, max_value=2_000), st.booleans())
    @settings(max_examples=100)
    def test_refused_withdrawal_leaves_no_trace(self, amount, refuse):
        """PROPERTY: A withdrawal either pays in full or changes nothing."""
        gateway = InMemoryGateway()
        bank = _bank(gateway, 1)
        if refuse:
            gateway.reject("0xa")
        before = _state(bank)

        try:
            bank.withdraw("0xa", amount)
            succeeded = True
        except BankingError:
            succeeded = False

        if succeeded:
            assert not refuse and amount <= 1_000
            assert bank.balance_of("0xa") == 1_000 - amount
            assert gateway.balance_of("0xa") == amount
        else:
            assert _state(bank) == before
        assert bank.verify_conservation()["valid"]

    def test_crashing_gateway_restores_everything(self):
        """A gateway that raises mid-completion leaves the bank unchanged and propagates."""
        gateway = InMemoryGateway()
        bank = _bank(gateway, 100)

        def crash(who, amount):
            raise RuntimeError("network down")

        gateway.on_receive("0xr", crash)
        before = _state(bank)
        try:
            bank.complete_transaction("owner", "t1", "0xr")
            raised = False
        except RuntimeError:
            raised = True
        assert raised
        assert _state(bank) == before
        assert not bank.guard.locked


callback_actions = st.lists(
    st.sampled_from(["verify", "register", "initiate", "deposit", "advance", "transfer_admin"]),
    min_size=1,
    max_size=6,
)


def _meddle(bank, action, who):
    if action == "verify":
        bank.verify_transaction(who, "t9", "ur", "x")
    elif action == "register":
        bank.register_user("0xnew", "unew")
    elif action == "initiate":
        bank.initiate_transaction("owner", "t10", "ur", "", 5, "y", bank.time_from_now(60))
    elif action == "deposit":
        bank.deposit(who, 7)
    elif action == "advance":
        bank.advance_seconds(30)
    else:
        bank.transfer_admin("owner", who)


class TestCallbackAtomicity:
    """Whatever a recipient does from inside a transfer disappears with a refused transfer."""

    @given(callback_actions)
    @settings(max_examples=100)
    def test_refused_completion_discards_callback_effects(self, actions):
        """
        PROPERTY: A recipient whose callback calls back into the bank and then
        refuses the funds leaves every part of the bank as it was.
        """
        gateway = InMemoryGateway()
        bank = _bank(gateway, 100)
        bank.register_user("0xr", "ur")
        bank.initiate_transaction("owner", "t9", "ur", "", 1, "x", bank.time_from_now(60))
        rejected = []

        def hook(who, amount):
            for action in actions:
                try:
                    _meddle(bank, action, who)
                except BankingError as e:
                    rejected.append(e.error_code)
            raise TransferFailed("refusing funds")

        gateway.on_receive("0xr", hook)
        before = _state(bank)
        try:
            bank.complete_transaction("owner", "t1", "0xr")
            raised = False
        except TransferFailed:
            raised = True

        assert raised
        assert rejected == ["ReentrantCall"] * len(actions)
        assert _state(bank) == before
        assert bank.get_transaction("t9").status == "PENDING"
        assert bank.admin == "owner"

    def test_callback_verify_then_refuse(self):
        """A verify made from a refusing recipient's callback is not kept."""
        gateway = InMemoryGateway()
        bank = _bank(gateway, 100)
        bank.register_user("0xr", "ur")
        bank.initiate_transaction("owner", "t9", "ur", "", 1, "x", bank.time_from_now(60))

        def hook(who, amount):
            try:
                bank.verify_transaction(who, "t9", "ur", "x")
            except BankingError:
                pass
            raise TransferFailed("refusing funds")

        gateway.on_receive("0xr", hook)
        before = _state(bank)
        try:
            bank.complete_transaction("owner", "t1", "0xr")
        except TransferFailed:
            pass
        assert _state(bank) == before
        assert not bank.get_transaction("t9").verified
        assert len(bank.notifications) == len(before[2])

"""
Re-entrancy Conformance Tests

INVARIANT: A callback during an outbound transfer cannot move funds.

    ∀ fund-moving operation F with transfer callback C:
        every fund-moving call made by C fails with ReentrantCall
        balances reflect at most the single transfer of F
"""

from datetime import datetime
from hypothesis import given, settings
from hypothesis import strategies as st

from biobank import BiometricBank, InMemoryGateway, ReentrantCall, BankingError


callbacks = st.lists(st.sampled_from(["withdraw", "complete"]), min_size=1, max_size=5)


def _bank():
    gateway = InMemoryGateway()
    bank = BiometricBank(
        "test", admin="owner", gateway=gateway,
        initial_time=datetime(2025, 1, 1), verbose=False,
    )
    bank.register_user("0xa", "u1")
    bank.deposit("0xa", 1_000)
    bank.deposit("0xr", 1_000)
    bank.initiate_transaction("owner", "t1", "u1", "", 100, "s", bank.time_from_now(60))
    bank.verify_transaction("0xa", "t1", "u1", "s")
    return bank, gateway


def _attacker(bank, calls, rejected):
    def hook(who, amount):
        for call in calls:
            try:
                if call == "withdraw":
                    bank.withdraw(who, amount)
                else:
                    bank.complete_transaction("owner", "t1", who)
            except ReentrantCall as e:
                rejected.append(e)
    return hook


class TestReentrancyProperties:

    @given(callbacks, st.sampled_from(["withdraw", "complete"]))
    @settings(max_examples=100)
    def test_callbacks_never_move_funds(self, calls, outer):
        """
        PROPERTY: Whether the outer operation is a withdrawal or a completion,
        every nested fund-moving call is rejected and exactly one transfer happens.
        """
        bank, gateway = _bank()
        rejected = []
        gateway.on_receive("0xr", _attacker(bank, calls, rejected))

        if outer == "withdraw":
            bank.withdraw("0xr", 100)
        else:
            bank.complete_transaction("owner", "t1", "0xr")

        assert len(rejected) == len(calls)
        assert gateway.transfers == [("0xr", 100)]
        assert not bank.guard.locked
        result = bank.verify_conservation()
        assert result["valid"]
        assert result["withdrawn"] + result["paid_out"] == 100

    @given(callbacks)
    @settings(max_examples=50)
    def test_propagated_rejection_fails_outer_operation(self, calls):
        """PROPERTY: A callback that lets ReentrantCall escape fails the outer transfer entirely."""
        bank, gateway = _bank()

        def hook(who, amount):
            for call in calls:
                if call == "withdraw":
                    bank.withdraw(who, amount)
                else:
                    bank.complete_transaction("owner", "t1", who)

        gateway.on_receive("0xr", hook)
        try:
            bank.complete_transaction("owner", "t1", "0xr")
            raised = False
        except BankingError as e:
            raised = e.error_code == "TransferFailed"
        assert raised
        assert gateway.transfers == []
        assert not bank.get_transaction("t1").completed
        assert bank.get_user_balance("u1") == 1_000

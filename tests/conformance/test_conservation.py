"""
Conservation Conformance Tests

INVARIANT: Funds in custody are exactly what came in minus what went out.

    Σ balances = Σ deposits - Σ withdrawals - Σ completed amounts
    ∀ account a: balance(a) ≥ 0

External recipients receive exactly what left custody.
"""

from datetime import datetime
from hypothesis import given, settings
from hypothesis import strategies as st

from biobank import BiometricBank, InMemoryGateway, BankingError, MAX_BALANCE


ACCOUNTS = ["0xa", "0xb", "0xc"]

operations = st.lists(
    st.tuples(
        st.sampled_from(["deposit", "withdraw", "release"]),
        st.sampled_from(ACCOUNTS),
        st.integers(min_value=1, max_value=1_000),
    ),
    max_size=40,
)


def _bank():
    gateway = InMemoryGateway()
    bank = BiometricBank(
        "test", admin="owner", gateway=gateway,
        initial_time=datetime(2025, 1, 1), verbose=False,
    )
    for i, account in enumerate(ACCOUNTS):
        bank.register_user(account, f"u{i}")
    return bank, gateway


class TestConservationProperties:

    @given(operations)
    @settings(max_examples=100)
    def test_custody_matches_flows(self, ops):
        """
        PROPERTY: After any mix of deposits, withdrawals and releases, the sum
        of balances equals deposits minus everything that left, and what left
        is exactly what the gateway delivered.
        """
        bank, gateway = _bank()
        deposited = 0

        for n, (kind, account, amount) in enumerate(ops):
            user_id = bank.user_id_of(account)
            try:
                if kind == "deposit":
                    bank.deposit(account, amount)
                    deposited += amount
                elif kind == "withdraw":
                    bank.withdraw(account, amount)
                else:
                    txn_id = f"t{n}"
                    bank.initiate_transaction(
                        "owner", txn_id, user_id, "", amount, "s", bank.time_from_now(60)
                    )
                    bank.verify_transaction(account, txn_id, user_id, "s")
                    bank.complete_transaction("owner", txn_id, "0xrecipient")
            except BankingError:
                pass

            result = bank.verify_conservation()
            assert result["valid"], result
            assert result["negative"] == []

        total = sum(bank.balance_of(a) for a in ACCOUNTS)
        assert total == deposited - gateway.total_sent()
        assert bank.ledger.total_deposited == deposited

    @given(st.integers(min_value=1, max_value=MAX_BALANCE), st.integers(min_value=1, max_value=MAX_BALANCE))
    @settings(max_examples=50)
    def test_no_balance_above_maximum(self, first, second):
        """PROPERTY: A deposit that would exceed MAX_BALANCE is refused and changes nothing."""
        bank, _ = _bank()
        bank.deposit("0xa", first)
        try:
            bank.deposit("0xa", second)
        except BankingError:
            assert first + second > MAX_BALANCE
            assert bank.balance_of("0xa") == first
        else:
            assert bank.balance_of("0xa") == first + second
        assert bank.balance_of("0xa") <= MAX_BALANCE
        assert bank.verify_conservation()["valid"]

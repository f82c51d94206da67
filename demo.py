#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Biometric-Gated Fund Release Step by Step

This is a pedagogical demonstration of how a biobank instance works.
Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation   - The bank, identities, deposits and withdrawals
  4-6:  Release      - Initiate, verify, complete
  7-8:  Failure      - Expiry, wrong secrets, refused transfers
  9:    Attacks      - A recipient calling back into the bank
  10:   Audit        - Notifications and the conservation proof

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime
import sys

from biobank import (
    BiometricBank, InMemoryGateway,
    to_base_units, from_base_units,
    BankingError, ReentrantCall,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    admin: str = "owner"
    alice: str = "0xa11ce"
    bob: str = "0xb0b"
    merchant: str = "0xmerchant"

    alice_deposit: str = "1.0"
    payment: str = "0.5"
    secret: str = "biometric-scan-data-alice-abc-123"
    ttl_seconds: int = 3600


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def units(amount: int) -> str:
    return f"{from_base_units(amount)}"


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_empty_bank():
    """Create a bank and look at its initial state."""
    step_header(1, "The Empty Bank",
        "A bank instance starts with an administrator, a clock and nothing else.")

    print(f">>> bank = BiometricBank('tutorial', admin='{CONFIG.admin}', initial_time={CONFIG.start_time!r})")
    gateway = InMemoryGateway()
    bank = BiometricBank(
        "tutorial",
        admin=CONFIG.admin,
        gateway=gateway,
        initial_time=CONFIG.start_time,
        verbose=True,
    )

    section_header("Initial State")
    print(f"Administrator:   {bank.admin}")
    print(f"Current time:    {bank.current_time}")
    print(f"Registered:      {bank.registry.list_users()}")
    print(f"Notifications:   {len(bank.notifications)}")

    return bank, gateway


def step_02_register(bank: BiometricBank):
    """Bind accounts to user ids."""
    step_header(2, "Identities",
        "Each account binds to exactly one userId, and each userId to one account.")

    print(f'>>> bank.register_user("{CONFIG.alice}", "alice-id")')
    bank.register_user(CONFIG.alice, "alice-id")
    print(f'>>> bank.register_user("{CONFIG.bob}", "bob-id")')
    bank.register_user(CONFIG.bob, "bob-id")

    section_header("Bob tries to claim alice-id")
    try:
        bank.register_user(CONFIG.bob, "alice-id")
    except BankingError as e:
        print(f"✗ {e.error_code}: {e}")

    print(f'\nresolve("alice-id") = {bank.resolve("alice-id")}')
    return bank


def step_03_funds(bank: BiometricBank, gateway: InMemoryGateway):
    """Deposit and withdraw."""
    step_header(3, "Custodial Balances",
        "Deposits credit the caller; withdrawals pay the caller back out.")

    bank.deposit(CONFIG.alice, to_base_units(CONFIG.alice_deposit))
    bank.deposit(CONFIG.bob, to_base_units("0.3"))
    bank.withdraw(CONFIG.bob, to_base_units("0.1"))

    section_header("Balances")
    print(f"alice in bank: {units(bank.balance_of(CONFIG.alice))}")
    print(f"bob in bank:   {units(bank.balance_of(CONFIG.bob))}")
    print(f"bob outside:   {units(gateway.balance_of(CONFIG.bob))}")

    section_header("Overdraft attempt")
    try:
        bank.withdraw(CONFIG.bob, to_base_units("5"))
    except BankingError as e:
        print(f"✗ {e.error_code}: {e}")

    return bank


# ============================================================================
# PHASE 2: RELEASE (Steps 4-6)
# ============================================================================

def step_04_initiate(bank: BiometricBank):
    """The administrator records a payment request."""
    step_header(4, "Initiate",
        "Only the administrator can open a transaction. Only a hash of the secret is kept.")

    record = bank.initiate_transaction(
        CONFIG.admin, "txn-001", "alice-id", "Invoice 42",
        to_base_units(CONFIG.payment), CONFIG.secret,
        bank.time_from_now(CONFIG.ttl_seconds),
    )
    print(record)
    print(f"\nCommitment: {record.secret_commitment[:16]}...")

    section_header("Alice tries to initiate for herself")
    try:
        bank.initiate_transaction(
            CONFIG.alice, "txn-999", "alice-id", "", 1, "x", bank.time_from_now(60)
        )
    except BankingError as e:
        print(f"✗ {e.error_code}")

    return bank


def step_05_verify(bank: BiometricBank):
    """Alice presents her biometric data."""
    step_header(5, "Verify",
        "The bound account presents the secret before the deadline.")

    section_header("Bob tries first")
    try:
        bank.verify_transaction(CONFIG.bob, "txn-001", "alice-id", CONFIG.secret)
    except BankingError as e:
        print(f"✗ {e.error_code}")

    section_header("Alice with a bad scan, then a good one")
    try:
        bank.verify_transaction(CONFIG.alice, "txn-001", "alice-id", "smudged-scan")
    except BankingError as e:
        print(f"✗ {e.error_code} (nothing changed, retry allowed)")

    bank.advance_seconds(120)
    bank.verify_transaction(CONFIG.alice, "txn-001", "alice-id", CONFIG.secret)
    print(f"\nStatus: {bank.get_transaction('txn-001').status}")
    return bank


def step_06_complete(bank: BiometricBank, gateway: InMemoryGateway):
    """The administrator releases the funds."""
    step_header(6, "Complete",
        "Debit, mark completed and transfer. A completed transaction never changes again.")

    bank.complete_transaction(CONFIG.admin, "txn-001", CONFIG.merchant)

    section_header("Balances")
    print(f"alice in bank:    {units(bank.get_user_balance('alice-id'))}")
    print(f"merchant outside: {units(gateway.balance_of(CONFIG.merchant))}")

    section_header("Second completion")
    try:
        bank.complete_transaction(CONFIG.admin, "txn-001", CONFIG.merchant)
    except BankingError as e:
        print(f"✗ {e.error_code}")

    return bank


# ============================================================================
# PHASE 3: FAILURE (Steps 7-8)
# ============================================================================

def step_07_expiry(bank: BiometricBank):
    """A request that is not verified in time."""
    step_header(7, "Expiry",
        "Verification after the deadline fails and marks the transaction expired.")

    bank.initiate_transaction(
        CONFIG.admin, "txn-002", "alice-id", "Short-lived", to_base_units("0.1"),
        CONFIG.secret, bank.time_from_now(5),
    )
    bank.advance_seconds(10)
    try:
        bank.verify_transaction(CONFIG.alice, "txn-002", "alice-id", CONFIG.secret)
    except BankingError as e:
        print(f"✗ {e.error_code}")
    print(f"expired flag: {bank.get_transaction('txn-002').expired}")
    return bank


def step_08_refused_transfer(bank: BiometricBank, gateway: InMemoryGateway):
    """The recipient refuses the funds; everything rolls back."""
    step_header(8, "Refused Transfer",
        "When the transfer fails, the debit and the completed flag are undone together.")

    bank.initiate_transaction(
        CONFIG.admin, "txn-003", "alice-id", "To a closed account", to_base_units("0.1"),
        CONFIG.secret, bank.time_from_now(600),
    )
    bank.verify_transaction(CONFIG.alice, "txn-003", "alice-id", CONFIG.secret)

    gateway.reject("0xclosed")
    before = bank.get_user_balance("alice-id")
    try:
        bank.complete_transaction(CONFIG.admin, "txn-003", "0xclosed")
    except BankingError as e:
        print(f"✗ {e.error_code}")
    print(f"alice balance unchanged: {bank.get_user_balance('alice-id') == before}")
    print(f"status: {bank.get_transaction('txn-003').status}")
    return bank


# ============================================================================
# PHASE 4: ATTACKS (Step 9)
# ============================================================================

def step_09_reentrancy(bank: BiometricBank, gateway: InMemoryGateway):
    """A recipient that tries to withdraw again while being paid."""
    step_header(9, "Re-entrancy",
        "A callback during a transfer cannot start another fund-moving operation.")

    attacker = "0xmallory"
    bank.deposit(attacker, to_base_units("0.2"))
    rejected = []

    def drain(who, amount):
        try:
            bank.withdraw(who, amount)
        except ReentrantCall as e:
            rejected.append(e)

    gateway.on_receive(attacker, drain)
    bank.withdraw(attacker, to_base_units("0.1"))

    print(f"\nNested withdrawals rejected: {len(rejected)}")
    print(f"mallory outside: {units(gateway.balance_of(attacker))} (paid once)")
    return bank


# ============================================================================
# PHASE 5: AUDIT (Step 10)
# ============================================================================

def step_10_audit(bank: BiometricBank):
    """Read the notification log and prove conservation."""
    step_header(10, "Audit Trail and Conservation",
        "Every accepted state change left a notification; the books balance.")

    for note in bank.notifications:
        print(f"  {note.timestamp:%H:%M:%S}  {note!r}")

    result = bank.verify_conservation()
    section_header("Conservation")
    print(f"deposited - withdrawn - paid_out = {units(result['expected'])}")
    print(f"sum of balances                  = {units(result['total'])}")
    print(f"valid: {result['valid']}")
    return bank


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       BIOBANK - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    bank, gateway = step_01_empty_bank()
    wait_for_enter()
    bank = step_02_register(bank)
    wait_for_enter()
    bank = step_03_funds(bank, gateway)
    wait_for_enter()

    bank = step_04_initiate(bank)
    wait_for_enter()
    bank = step_05_verify(bank)
    wait_for_enter()
    bank = step_06_complete(bank, gateway)
    wait_for_enter()

    bank = step_07_expiry(bank)
    wait_for_enter()
    bank = step_08_refused_transfer(bank, gateway)
    wait_for_enter()

    bank = step_09_reentrancy(bank, gateway)
    wait_for_enter()

    step_10_audit(bank)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:
      - Identities bind one account to one userId
      - Funds leave a balance only by withdrawal or by a verified release
      - Failed releases roll back completely
      - Callbacks during a transfer cannot move funds
      - Custody always equals deposits minus everything paid out

    Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()

"""
conftest.py - Shared pytest fixtures for biobank tests

Provides common fixtures used across unit, functional and conformance tests:
- Bare bank instances with an in-memory gateway
- A bank with a registered, funded user
- A bank with a transaction already initiated (and one already verified)
"""

import pytest
from datetime import datetime

from biobank import BiometricBank, InMemoryGateway, to_base_units


# =============================================================================
# CONSTANTS
# =============================================================================

T0 = datetime(2025, 1, 1, 9, 0)

ADMIN = "owner"
USER1 = "0xa1"
USER2 = "0xb2"
RECIPIENT = "0xrecipient"

ONE = to_base_units("1")
HALF = to_base_units("0.5")

SECRET = "biometric-scan-data-user1-abc-123"


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def make_bank(gateway=None, **kwargs) -> BiometricBank:
    """Quiet bank instance starting at T0."""
    kwargs.setdefault("verbose", False)
    kwargs.setdefault("initial_time", T0)
    return BiometricBank("test", ADMIN, gateway=gateway or InMemoryGateway(), **kwargs)


def notification_names(bank: BiometricBank):
    return [n.name for n in bank.notifications]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def gateway():
    return InMemoryGateway()


@pytest.fixture
def bank(gateway):
    """Fresh bank with no registrations."""
    return make_bank(gateway)


@pytest.fixture
def funded_bank(bank):
    """USER1 registered as "u1" with 1.0 deposited."""
    bank.register_user(USER1, "u1")
    bank.deposit(USER1, ONE)
    return bank


@pytest.fixture
def pending_bank(funded_bank):
    """funded_bank plus transaction "t1" for 0.5, expiring in one hour."""
    funded_bank.initiate_transaction(
        ADMIN, "t1", "u1", "Payment for services", HALF, SECRET,
        funded_bank.time_from_now(3600),
    )
    return funded_bank


@pytest.fixture
def verified_bank(pending_bank):
    """pending_bank with "t1" verified by USER1."""
    pending_bank.verify_transaction(USER1, "t1", "u1", SECRET)
    return pending_bank

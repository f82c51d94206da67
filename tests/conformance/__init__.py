"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of a biobank instance.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. registration.py - One account per userId, one userId per account
2. conservation.py - Custody equals deposits minus withdrawals and payouts
3. ordering.py - complete only after verify; verify only in time, by the owner
4. idempotency.py - A completed transaction never changes again
5. reentrancy.py - Callbacks during a transfer cannot move funds
6. atomicity.py - Failed fund-moving operations leave no trace, callbacks included

These tests use hypothesis for property-based testing.
"""

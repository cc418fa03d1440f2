"""Core logic: credential matching and login-history accounting.

Modules:
- records: roster/ledger record types and normalization
- authenticator: exam number + password matching
- ledger: login count and first/last login bookkeeping
"""

__all__ = [
    "records",
    "authenticator",
    "ledger",
]

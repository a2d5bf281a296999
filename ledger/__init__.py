"""
Ledger - Source Package

Personal-finance ledger engine: users own accounts and categories and
record signed transactions that keep each account's cached balance in
step with its history.

PRINCIPLES:
1. An account balance always equals the sum of its transactions
2. Every mutation is one store transaction - all or nothing
3. Ownership is checked on every read and write
4. Concurrent edits are detected, never silently merged
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Ledger Team"

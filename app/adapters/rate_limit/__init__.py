"""Rate limiting adapters.

The limiter keeps no state of its own: the sliding-window ledger lives in the
record store, so every worker sharing a store shares the same limits.
"""

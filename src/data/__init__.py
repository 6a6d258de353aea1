"""
Data contracts and ledger/budget/benchmark sources.
"""

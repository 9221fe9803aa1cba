"""Persistence for obligations, cycles and ledger entries.

``base`` defines the repository interfaces the engine depends on;
``sqlite`` implements them.
"""

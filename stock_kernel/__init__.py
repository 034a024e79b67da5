"""
Stock Kernel

The ledger core of the multi-location inventory system:
- Per-location quantity on hand and weighted average cost
- Locked per-period price book
- Period lifecycle and per-location readiness
- Atomic units of work over a relational store
"""

__version__ = "0.1.0"

"""
Lifecycle Kernel

An append-only event ledger for physical units and their spare parts with:
- Event-sourced unit ownership (factory, dealer, sub-dealer, customer)
- Frozen warranty snapshots per service visit
- Part stock derived by folding dispatch and replacement events
- Version-guarded check-then-append for stock-consuming writes
"""

__version__ = "0.1.0"

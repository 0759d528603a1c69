"""
Consolidation Kernel

Infrastructure core for the financial statement consolidation engine:
- Read-only ORM over the ledger-balance, budget, chart and adjustment stores
- Paged, validated selectors (no silent truncation)
- Pure period bucketing and aggregation keys
- Typed errors and structured logging
"""

__version__ = "0.1.0"

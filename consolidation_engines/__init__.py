"""
Module: consolidation_engines
Responsibility:
    Package entrypoint that re-exports the pure calculation engines used by
    the statements module.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import consolidation_kernel domain types, DTOs and logging.
    MUST NOT import consolidation_modules or consolidation_api.

Invariants enforced:
    - Purity: engines never read the clock or the database.
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine``, emitting
    CONSOLIDATION_ENGINE_TRACE records with an input fingerprint and duration.
"""

from consolidation_engines.adjustments import (
    AdjustmentEntry,
    AdjustmentExpander,
    AdjustmentKind,
    AdjustmentSide,
    allocation_schedule,
    spread_amounts,
)
from consolidation_engines.aggregation import (
    AmountBasis,
    BalanceAggregator,
    BucketAmounts,
    consolidate,
    merge_tables,
)
from consolidation_engines.mapping import AccountMap, AccountMapper

__all__ = [
    "AccountMap",
    "AccountMapper",
    "AmountBasis",
    "BalanceAggregator",
    "BucketAmounts",
    "consolidate",
    "merge_tables",
    "AdjustmentEntry",
    "AdjustmentExpander",
    "AdjustmentKind",
    "AdjustmentSide",
    "allocation_schedule",
    "spread_amounts",
]

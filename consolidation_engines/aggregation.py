"""
Module: consolidation_engines.aggregation
Responsibility:
    Reduce monthly ledger balances, budget amounts and expanded adjustment
    entries into per-cell, per-bucket amounts, and consolidate cells into
    per-master-account columns for any subset of entities.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - net_change of a bucket is the sum over EVERY month of the bucket.
    - ending_balance of a bucket is the value of its single LAST month (zero
      if that month has no row), never a sum.
    - beginning_balance of a bucket is the value of its FIRST month (zero if
      that month has no row).
    - A ledger row is only counted for the entity its mapping belongs to.
    - consolidate() always sums directly over the requested entities' cells.
      A consolidated column is never derived from other columns, so an entity
      that belongs to several reporting entities is counted exactly once.
    - Decimal-only arithmetic; the reduction is associative, so partial maps
      (e.g. per entity) can be merged with merge_tables().

Failure modes:
    - None beyond those of the inputs; rows for unmapped accounts are skipped.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol, TypeVar
from uuid import UUID

from consolidation_engines.mapping import AccountMap
from consolidation_engines.tracer import traced_engine
from consolidation_kernel.db.types import ZERO
from consolidation_kernel.domain.keys import ContributionKey, MasterEntityKey
from consolidation_kernel.domain.periods import PeriodBucket, YearMonth
from consolidation_kernel.logging_config import get_logger
from consolidation_kernel.selectors.balance_selector import GLBalanceRecord
from consolidation_kernel.selectors.budget_selector import BudgetAmountRecord

logger = get_logger("engines.aggregation")


class AmountBasis(str, Enum):
    """Which figure of a bucket a statement line shows."""

    NET_CHANGE = "net_change"          # flow statements
    ENDING_BALANCE = "ending_balance"  # point-in-time statements
    CHANGE = "change"                  # ending - beginning (cash-flow deltas)


@dataclass(frozen=True)
class BucketAmounts:
    """The three figures of one cell in one bucket."""

    net_change: Decimal = ZERO
    ending_balance: Decimal = ZERO
    beginning_balance: Decimal = ZERO

    def __add__(self, other: BucketAmounts) -> BucketAmounts:
        return BucketAmounts(
            net_change=self.net_change + other.net_change,
            ending_balance=self.ending_balance + other.ending_balance,
            beginning_balance=self.beginning_balance + other.beginning_balance,
        )

    @property
    def change(self) -> Decimal:
        return self.ending_balance - self.beginning_balance

    def value(self, basis: AmountBasis) -> Decimal:
        match basis:
            case AmountBasis.NET_CHANGE:
                return self.net_change
            case AmountBasis.ENDING_BALANCE:
                return self.ending_balance
            case AmountBasis.CHANGE:
                return self.change
        raise ValueError(f"Unknown amount basis: {basis}")


EMPTY = BucketAmounts()

BucketTable = dict[str, BucketAmounts]


class _Cell(Protocol):
    @property
    def master_account_id(self) -> UUID: ...

    @property
    def entity_id(self) -> UUID: ...


K = TypeVar("K", bound=_Cell)


@dataclass(frozen=True)
class _Placement:
    bucket_key: str
    is_first: bool
    is_last: bool


def _placements(buckets: Iterable[PeriodBucket]) -> dict[YearMonth, list[_Placement]]:
    """month -> the buckets it falls in, with its position inside each."""
    placements: dict[YearMonth, list[_Placement]] = {}
    for bucket in buckets:
        for month in bucket.months:
            placements.setdefault(month, []).append(
                _Placement(
                    bucket_key=bucket.key,
                    is_first=month == bucket.first_month,
                    is_last=month == bucket.last_month,
                )
            )
    return placements


class _Accumulator:
    __slots__ = ("net_change", "ending_balance", "beginning_balance")

    def __init__(self) -> None:
        self.net_change = ZERO
        self.ending_balance = ZERO
        self.beginning_balance = ZERO

    def add(
        self,
        placement: _Placement,
        net_change: Decimal,
        ending: Decimal,
        beginning: Decimal,
    ) -> None:
        self.net_change += net_change
        if placement.is_last:
            self.ending_balance += ending
        if placement.is_first:
            self.beginning_balance += beginning

    def freeze(self) -> BucketAmounts:
        return BucketAmounts(
            net_change=self.net_change,
            ending_balance=self.ending_balance,
            beginning_balance=self.beginning_balance,
        )


def _freeze(acc: dict[K, dict[str, _Accumulator]]) -> dict[K, BucketTable]:
    return {
        key: {bucket: a.freeze() for bucket, a in buckets.items()}
        for key, buckets in acc.items()
    }


class BalanceAggregator:
    """
    Reduce validated rows into bucketed cell tables.

    Contract:
        Pure functions; no I/O, no clock.  All results are plain dicts of
        frozen BucketAmounts keyed by typed tuple keys.
    """

    @traced_engine("balance_aggregator", "1.0", fingerprint_fields=("buckets",))
    def aggregate_balances(
        self,
        *,
        balances: Iterable[GLBalanceRecord],
        account_map: AccountMap,
        buckets: Iterable[PeriodBucket],
    ) -> dict[ContributionKey, BucketTable]:
        """Ledger rows -> (master, entity, local account) x bucket."""
        placements = _placements(buckets)
        acc: dict[ContributionKey, dict[str, _Accumulator]] = {}
        rows = 0
        for row in balances:
            target = account_map.account_index.get(row.account_id)
            if target is None or target.entity_id != row.entity_id:
                continue
            spots = placements.get(row.year_month)
            if not spots:
                continue
            rows += 1
            key = ContributionKey(target.master_account_id, target.entity_id, row.account_id)
            cell = acc.setdefault(key, {})
            for spot in spots:
                cell.setdefault(spot.bucket_key, _Accumulator()).add(
                    spot, row.net_change, row.ending_balance, row.beginning_balance,
                )

        logger.debug(
            "balances_aggregated",
            extra={"rows_used": rows, "contributions": len(acc)},
        )
        return _freeze(acc)

    @traced_engine("balance_aggregator.budget", "1.0", fingerprint_fields=("buckets",))
    def aggregate_budget(
        self,
        *,
        amounts: Iterable[BudgetAmountRecord],
        version_entities: Mapping[UUID, UUID],
        account_map: AccountMap,
        buckets: Iterable[PeriodBucket],
    ) -> dict[ContributionKey, BucketTable]:
        """
        Budget rows -> (master, entity, local account) x bucket.

        ``version_entities`` maps each active budget version id to its
        entity.  A budget figure acts as both the month's activity and its
        point-in-time value, so net_change sums the bucket and
        ending_balance takes the last month.
        """
        placements = _placements(buckets)
        acc: dict[ContributionKey, dict[str, _Accumulator]] = {}
        for row in amounts:
            entity_id = version_entities.get(row.budget_version_id)
            target = account_map.account_index.get(row.account_id)
            if entity_id is None or target is None or target.entity_id != entity_id:
                continue
            spots = placements.get(row.year_month)
            if not spots:
                continue
            key = ContributionKey(target.master_account_id, entity_id, row.account_id)
            cell = acc.setdefault(key, {})
            for spot in spots:
                cell.setdefault(spot.bucket_key, _Accumulator()).add(
                    spot, row.amount, row.amount, ZERO,
                )
        return _freeze(acc)

    @traced_engine("balance_aggregator.adjustments", "1.0", fingerprint_fields=("buckets",))
    def aggregate_adjustments(
        self,
        *,
        entries: Iterable[_AdjustmentLike],
        buckets: Iterable[PeriodBucket],
    ) -> dict[MasterEntityKey, BucketTable]:
        """
        Expanded adjustment entries -> (master, entity) x bucket.

        An entry is a delta in one month: it moves net_change of every bucket
        containing that month, and ending_balance of a bucket only when that
        month is the bucket's last month.
        """
        placements = _placements(buckets)
        acc: dict[MasterEntityKey, dict[str, _Accumulator]] = {}
        for entry in entries:
            spots = placements.get(entry.month)
            if not spots:
                continue
            cell = acc.setdefault(
                MasterEntityKey(entry.master_account_id, entry.entity_id), {},
            )
            for spot in spots:
                cell.setdefault(spot.bucket_key, _Accumulator()).add(
                    spot, entry.amount, entry.amount, ZERO,
                )
        return _freeze(acc)


class _AdjustmentLike(Protocol):
    @property
    def master_account_id(self) -> UUID: ...

    @property
    def entity_id(self) -> UUID: ...

    @property
    def month(self) -> YearMonth: ...

    @property
    def amount(self) -> Decimal: ...


def consolidate(
    table: Mapping[K, BucketTable],
    entity_ids: Collection[UUID],
) -> dict[UUID, BucketTable]:
    """
    Sum cells of the given entities into master_account_id x bucket.

    Always computed directly from the entity-level cells.
    """
    wanted = set(entity_ids)
    out: dict[UUID, dict[str, BucketAmounts]] = {}
    for key, buckets in table.items():
        if key.entity_id not in wanted:
            continue
        master = out.setdefault(key.master_account_id, {})
        for bucket_key, amounts in buckets.items():
            master[bucket_key] = master.get(bucket_key, EMPTY) + amounts
    return out


def merge_tables(*tables: Mapping[UUID, BucketTable]) -> dict[UUID, BucketTable]:
    """Add master-level tables cell by cell."""
    out: dict[UUID, dict[str, BucketAmounts]] = {}
    for table in tables:
        for master_id, buckets in table.items():
            target = out.setdefault(master_id, {})
            for bucket_key, amounts in buckets.items():
                target[bucket_key] = target.get(bucket_key, EMPTY) + amounts
    return out

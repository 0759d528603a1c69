"""
Drill-Down Resolver.

Reverses one rendered statement number into the (entity, local account)
balances and adjustment entries that produced it.

A line id is parsed into a tagged LineRef:

    ComputedRef          gross_margin            formula operands, each signed
    SectionTotalRef      revenue-total           every master of the section
    AccountRef           revenue-<uuid>          one master account
    CashFlowChangeRef    cf-wc-<uuid>            one balance-sheet delta

The resolver walks exactly the contribution table and adjustment entries the
summary was built from, applying the same display sign, the same formula
signs and the same month rule for adjustments (every bucket month for flow
lines, the bucket's last month for point-in-time lines).  Rows that round to
zero are hidden from the listing but still counted, so ``total`` equals the
summary value.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from consolidation_engines.adjustments import AdjustmentEntry
from consolidation_engines.aggregation import EMPTY, AmountBasis, BucketAmounts, BucketTable
from consolidation_engines.mapping import AccountMap
from consolidation_kernel.db.types import ZERO
from consolidation_kernel.domain.keys import ContributionKey
from consolidation_kernel.domain.periods import PeriodBucket
from consolidation_kernel.exceptions import LineNotResolvableError
from consolidation_kernel.logging_config import get_logger
from consolidation_kernel.selectors.chart_selector import (
    LocalAccountRecord,
    MasterAccountRecord,
)
from consolidation_modules.statements.config import (
    CashFlowCategories,
    Sign,
    StatementId,
    StatementLayout,
)
from consolidation_modules.statements.models import (
    AdjustmentRow,
    Column,
    DrillDownGroup,
    DrillDownReport,
    DrillDownRow,
)
from consolidation_modules.statements.statements import (
    CF_FINANCING_PREFIX,
    CF_INVESTING_PREFIX,
    CF_OPERATING_PREFIX,
    apply_sign,
    cash_effect,
    cash_flow_categories,
    display_sign,
    master_label,
)

logger = get_logger("modules.statements.drilldown")

_CF_PREFIXES = (CF_OPERATING_PREFIX, CF_INVESTING_PREFIX, CF_FINANCING_PREFIX)


# =========================================================================
# Line references
# =========================================================================


@dataclass(frozen=True)
class ComputedRef:
    computed_id: str


@dataclass(frozen=True)
class SectionTotalRef:
    section_id: str


@dataclass(frozen=True)
class AccountRef:
    section_id: str
    master_account_id: UUID


@dataclass(frozen=True)
class CashFlowChangeRef:
    prefix: str
    master_account_id: UUID


LineRef = ComputedRef | SectionTotalRef | AccountRef | CashFlowChangeRef


def _parse_uuid(text: str, line_id: str, statement_id: str) -> UUID:
    try:
        return UUID(text)
    except ValueError:
        raise LineNotResolvableError(
            line_id, statement_id, "line id does not end in a master account id",
        ) from None


def parse_line_id(
    line_id: str,
    statement_id: StatementId,
    layout: StatementLayout | None = None,
) -> LineRef:
    """Classify a rendered line id; raises LineNotResolvableError."""
    sid = statement_id.value
    if not line_id:
        raise LineNotResolvableError(line_id, sid, "empty line id")

    if statement_id is StatementId.CASH_FLOW:
        for prefix in _CF_PREFIXES:
            if line_id.startswith(prefix + "-"):
                master_id = _parse_uuid(line_id[len(prefix) + 1:], line_id, sid)
                return CashFlowChangeRef(prefix, master_id)
        raise LineNotResolvableError(line_id, sid, "cash-flow totals cannot be drilled into")

    if layout is None:
        raise LineNotResolvableError(line_id, sid, "statement has no layout")

    if layout.computed(line_id) is not None:
        return ComputedRef(line_id)
    if any(line_id == c.margin_line_id for c in layout.computed_lines):
        raise LineNotResolvableError(line_id, sid, "margin rows cannot be drilled into")

    section_id, sep, rest = line_id.partition("-")
    if not sep or layout.section(section_id) is None:
        raise LineNotResolvableError(line_id, sid, "unknown section or computed line")
    if rest == "total":
        return SectionTotalRef(section_id)
    return AccountRef(section_id, _parse_uuid(rest, line_id, sid))


# =========================================================================
# Resolution
# =========================================================================


ValueFn = Callable[[MasterAccountRecord, BucketAmounts], Decimal]


@dataclass(frozen=True)
class _Operand:
    section_id: str
    sign: int
    masters: tuple[MasterAccountRecord, ...]
    value: ValueFn
    # Month rule for adjustments; None means adjustments do not apply
    adjustment_basis: AmountBasis | None


@dataclass(frozen=True)
class DrillDownSource:
    """The data one drill-down walks, as loaded for the summary."""

    account_map: AccountMap
    # In-scope entities only; rows of any other entity are ignored
    entity_names: Mapping[UUID, str]
    local_accounts: Mapping[UUID, LocalAccountRecord]
    contributions: Mapping[ContributionKey, BucketTable]
    adjustments: tuple[AdjustmentEntry, ...] = ()


def _statement_value(basis: AmountBasis) -> ValueFn:
    def value(master: MasterAccountRecord, amounts: BucketAmounts) -> Decimal:
        return apply_sign(amounts.value(basis), display_sign(master.classification))
    return value


def _resolve_operands(
    ref: LineRef,
    *,
    line_id: str,
    statement_id: StatementId,
    layout: StatementLayout | None,
    categories: CashFlowCategories,
    account_map: AccountMap,
) -> tuple[str, list[_Operand]]:
    sid = statement_id.value
    match ref:
        case CashFlowChangeRef(prefix=prefix, master_account_id=master_id):
            master = account_map.master(master_id)
            filters = cash_flow_categories(categories)[prefix]
            if master is None or not any(
                f.matches(master.classification, master.account_type) for f in filters
            ):
                raise LineNotResolvableError(
                    line_id, sid, "master account is not in this cash-flow category",
                )
            return master.name, [_Operand(prefix, 1, (master,), cash_effect, None)]

    value = _statement_value(layout.basis)

    def operand(section_id: str, sign: int) -> _Operand:
        section = layout.section(section_id)
        return _Operand(
            section_id,
            sign,
            tuple(account_map.masters_matching(section.filter)),
            value,
            layout.basis,
        )

    match ref:
        case ComputedRef(computed_id=computed_id):
            line = layout.computed(computed_id)
            return line.label, [operand(op.section_id, int(op.sign)) for op in line.operands]
        case SectionTotalRef(section_id=section_id):
            return layout.section(section_id).total_label, [operand(section_id, int(Sign.PLUS))]
        case AccountRef(section_id=section_id, master_account_id=master_id):
            section = layout.section(section_id)
            master = account_map.master(master_id)
            if master is None or not section.filter.matches(
                master.classification, master.account_type,
            ):
                raise LineNotResolvableError(
                    line_id, sid, "master account is not in this section",
                )
            return master.name, [
                _Operand(section_id, 1, (master,), value, layout.basis),
            ]
    raise LineNotResolvableError(line_id, sid, "unsupported line reference")


def _adjustment_applies(entry: AdjustmentEntry, bucket: PeriodBucket, basis: AmountBasis) -> bool:
    if basis is AmountBasis.ENDING_BALANCE:
        return entry.month == bucket.last_month
    return bucket.contains(entry.month)


def _sorted_rows(rows: Iterable[DrillDownRow]) -> tuple[DrillDownRow, ...]:
    return tuple(
        sorted(
            rows,
            key=lambda r: (-abs(r.amount), r.entity_name, r.account_number or "", str(r.account_id)),
        )
    )


def resolve_drill_down(
    ref: LineRef,
    *,
    line_id: str,
    statement_id: StatementId,
    layout: StatementLayout | None,
    categories: CashFlowCategories,
    bucket: PeriodBucket,
    column: Column,
    source: DrillDownSource,
    zero_threshold: Decimal,
) -> DrillDownReport:
    """
    Expand one line/bucket/column into contribution groups and adjustments.

    ``source.contributions`` must be the table of ``column`` (ledger or
    budget) restricted to the scope's entities; ``source.adjustments`` the
    in-scope entries the summary applied (empty for budget).
    """
    label, operands = _resolve_operands(
        ref,
        line_id=line_id,
        statement_id=statement_id,
        layout=layout,
        categories=categories,
        account_map=source.account_map,
    )

    by_master: dict[UUID, list[tuple[ContributionKey, BucketTable]]] = {}
    for key, table in source.contributions.items():
        if key.entity_id in source.entity_names:
            by_master.setdefault(key.master_account_id, []).append((key, table))

    total = ZERO
    groups: list[DrillDownGroup] = []
    adjustments: list[AdjustmentRow] = []
    hidden = 0
    for op in operands:
        for master in op.masters:
            raw = ZERO
            rows: list[DrillDownRow] = []
            for key, table in by_master.get(master.id, ()):
                amount = op.value(master, table.get(bucket.key, EMPTY))
                raw += amount
                if abs(amount) < zero_threshold:
                    hidden += 1
                    continue
                account = source.local_accounts.get(key.account_id)
                rows.append(
                    DrillDownRow(
                        entity_id=key.entity_id,
                        entity_name=source.entity_names.get(key.entity_id, ""),
                        account_id=key.account_id,
                        account_name=account.name if account else "",
                        account_number=account.account_number if account else None,
                        master_account_id=master.id,
                        master_account_number=master.account_number,
                        master_account_name=master.name,
                        amount=amount,
                    )
                )
            subtotal = apply_sign(raw, op.sign)
            total += subtotal
            if rows:
                groups.append(
                    DrillDownGroup(
                        section_id=op.section_id,
                        master_account_id=master.id,
                        label=master_label(master),
                        sign=op.sign,
                        subtotal=subtotal,
                        rows=_sorted_rows(rows),
                    )
                )

        if op.adjustment_basis is None or column is not Column.ACTUAL:
            continue
        masters = {m.id: m for m in op.masters}
        for entry in source.adjustments:
            master = masters.get(entry.master_account_id)
            if master is None or entry.entity_id not in source.entity_names:
                continue
            if not _adjustment_applies(entry, bucket, op.adjustment_basis):
                continue
            amount = apply_sign(
                apply_sign(entry.amount, display_sign(master.classification)), op.sign,
            )
            total += amount
            adjustments.append(
                AdjustmentRow(
                    kind=entry.kind.value,
                    adjustment_id=entry.adjustment_id,
                    side=entry.side.value,
                    section_id=op.section_id,
                    entity_id=entry.entity_id,
                    entity_name=source.entity_names.get(entry.entity_id, ""),
                    master_account_id=master.id,
                    master_account_number=master.account_number,
                    master_account_name=master.name,
                    month=entry.month.key,
                    description=entry.description,
                    amount=amount,
                )
            )

    logger.info(
        "drill_down_resolved",
        extra={
            "line_id": line_id,
            "statement_id": statement_id.value,
            "bucket_key": bucket.key,
            "column": column.value,
            "groups": len(groups),
            "adjustment_rows": len(adjustments),
            "hidden_rows": hidden,
        },
    )
    return DrillDownReport(
        line_id=line_id,
        label=label,
        statement_id=statement_id.value,
        column=column,
        bucket_key=bucket.key,
        bucket_label=bucket.label,
        total=total,
        groups=tuple(groups),
        adjustments=tuple(adjustments),
    )

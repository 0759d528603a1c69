"""
Pure financial statement builders.

These functions turn master-account column tables (already aggregated and
adjusted) into nested statement sections with subtotals, computed lines,
margin rows and the indirect-method cash flow statement.  ZERO I/O. ZERO
side effects.

A column is either a period bucket (summary) or a scope (breakdown); the
builders never care which, they only read ``table[master_id][column_key]``.

Functions in this module follow the consolidation_engines purity convention:
- No database access
- No clock access
- Decimal-only arithmetic
- Deterministic: same inputs always produce same outputs
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable, Mapping
from decimal import Decimal
from uuid import UUID

from consolidation_engines.aggregation import EMPTY, AmountBasis, BucketAmounts, BucketTable
from consolidation_engines.mapping import AccountMap
from consolidation_kernel.db.types import ZERO, round_money
from consolidation_kernel.models.chart import Classification
from consolidation_kernel.selectors.chart_selector import (
    MasterAccountRecord,
    SectionFilter,
)
from consolidation_modules.statements.config import (
    CashFlowCategories,
    ComputedLine,
    SectionConfig,
    StatementId,
    StatementLayout,
)
from consolidation_modules.statements.models import (
    ColumnHeader,
    LineItem,
    LineKind,
    Statement,
    StatementSection,
)

MARGIN_DECIMAL_PLACES = 4

MasterTable = Mapping[UUID, BucketTable]
Amounts = dict[str, Decimal]


# =========================================================================
# Helpers
# =========================================================================


def display_sign(classification: Classification) -> int:
    """-1 for credit-normal classifications, which are stored negative."""
    return -1 if classification.is_credit_normal else 1


def apply_sign(value: Decimal, sign: int) -> Decimal:
    # Negation, not multiplication, so a zero never renders as -0
    return value if sign > 0 else -value


def section_line_id(section_id: str, master_account_id: UUID) -> str:
    return f"{section_id}-{master_account_id}"


def master_label(master: MasterAccountRecord) -> str:
    return f"{master.account_number} - {master.name}" if master.account_number else master.name


def _column_values(
    table: MasterTable | None,
    master: MasterAccountRecord,
    columns: tuple[ColumnHeader, ...],
    basis: AmountBasis,
) -> Amounts | None:
    if table is None:
        return None
    buckets = table.get(master.id, {})
    sign = display_sign(master.classification)
    return {
        c.key: apply_sign(buckets.get(c.key, EMPTY).value(basis), sign)
        for c in columns
    }


def _sum_amounts(
    rows: Iterable[Amounts | None],
    columns: tuple[ColumnHeader, ...],
    signs: Iterable[int] | None = None,
) -> Amounts:
    total = {c.key: ZERO for c in columns}
    signs = list(signs) if signs is not None else None
    for i, amounts in enumerate(rows):
        if amounts is None:
            continue
        sign = signs[i] if signs is not None else 1
        for c in columns:
            total[c.key] += apply_sign(amounts.get(c.key, ZERO), sign)
    return total


def margin_ratio(amount: Decimal, base: Decimal) -> Decimal:
    """amount / base, zero when base is zero."""
    if base == ZERO:
        return ZERO
    return round_money(amount / base, MARGIN_DECIMAL_PLACES)


def _margins(amounts: Amounts | None, base: Amounts | None) -> Amounts | None:
    if amounts is None or base is None:
        return None
    return {k: margin_ratio(v, base.get(k, ZERO)) for k, v in amounts.items()}


def section_masters(
    section: SectionConfig | SectionFilter,
    account_map: AccountMap,
    visible: Collection[UUID],
) -> list[MasterAccountRecord]:
    """Master accounts of a section that have in-scope data, by account number."""
    flt = section.filter if isinstance(section, SectionConfig) else section
    return [m for m in account_map.masters_matching(flt) if m.id in visible]


# =========================================================================
# Income statement / balance sheet
# =========================================================================


def _account_line(
    section: SectionConfig,
    master: MasterAccountRecord,
    layout: StatementLayout,
    columns: tuple[ColumnHeader, ...],
    actual: MasterTable,
    budget: MasterTable | None,
    prior_year: MasterTable | None,
    first: bool,
) -> LineItem:
    return LineItem(
        id=section_line_id(section.id, master.id),
        label=master.name,
        kind=LineKind.ACCOUNT,
        amounts=_column_values(actual, master, columns, layout.basis),
        budget_amounts=_column_values(budget, master, columns, layout.basis),
        prior_year_amounts=_column_values(prior_year, master, columns, layout.basis),
        master_account_id=master.id,
        account_number=master.account_number,
        show_dollar_sign=first,
    )


def _computed_lines(
    line: ComputedLine,
    totals: Mapping[str, LineItem],
    layout: StatementLayout,
    columns: tuple[ColumnHeader, ...],
) -> list[LineItem]:
    operands = [totals[op.section_id] for op in line.operands]
    signs = [int(op.sign) for op in line.operands]

    def combine(pick: Callable[[LineItem], Amounts | None]) -> Amounts | None:
        values = [pick(t) for t in operands]
        if any(v is None for v in values):
            return None
        return _sum_amounts(values, columns, signs)

    amounts = combine(lambda t: t.amounts)
    budget = combine(lambda t: t.budget_amounts)
    prior_year = combine(lambda t: t.prior_year_amounts)
    out = [
        LineItem(
            id=line.id,
            label=line.label,
            kind=LineKind.COMPUTED,
            amounts=amounts,
            budget_amounts=budget,
            prior_year_amounts=prior_year,
            is_grand_total=line.is_grand_total,
            show_dollar_sign=True,
        )
    ]
    if line.margin_label is not None:
        base = totals[layout.margin_base]
        out.append(
            LineItem(
                id=line.margin_line_id,
                label=line.margin_label,
                kind=LineKind.MARGIN,
                amounts=_margins(amounts, base.amounts),
                budget_amounts=_margins(budget, base.budget_amounts),
                prior_year_amounts=_margins(prior_year, base.prior_year_amounts),
            )
        )
    return out


def build_statement(
    layout: StatementLayout,
    *,
    account_map: AccountMap,
    columns: tuple[ColumnHeader, ...],
    visible: Collection[UUID],
    actual: MasterTable,
    budget: MasterTable | None = None,
    prior_year: MasterTable | None = None,
) -> Statement:
    """
    Build one sectioned statement.

    Each section lists its visible master accounts (display-signed value of
    ``layout.basis`` per column), then its subtotal, then the computed lines
    configured to follow it.  Computed lines only ever combine section
    subtotals.
    """
    totals: dict[str, LineItem] = {}
    sections: list[StatementSection] = []
    for section in layout.sections:
        masters = section_masters(section, account_map, visible)
        lines = tuple(
            _account_line(
                section, m, layout, columns, actual, budget, prior_year, first=i == 0,
            )
            for i, m in enumerate(masters)
        )
        total = LineItem(
            id=section.total_line_id,
            label=section.total_label,
            kind=LineKind.SECTION_TOTAL,
            amounts=_sum_amounts((ln.amounts for ln in lines), columns),
            budget_amounts=(
                _sum_amounts((ln.budget_amounts for ln in lines), columns)
                if budget is not None else None
            ),
            prior_year_amounts=(
                _sum_amounts((ln.prior_year_amounts for ln in lines), columns)
                if prior_year is not None else None
            ),
            show_dollar_sign=True,
        )
        totals[section.id] = total

        computed: list[LineItem] = []
        for line in layout.lines_after(section.id):
            computed.extend(_computed_lines(line, totals, layout, columns))

        sections.append(
            StatementSection(
                id=section.id,
                title=section.title,
                lines=lines,
                total=total,
                computed=tuple(computed),
            )
        )

    return Statement(
        statement_id=layout.statement_id.value,
        title=layout.title,
        columns=columns,
        sections=tuple(sections),
    )


# =========================================================================
# Cash flow statement (indirect method)
# =========================================================================


CF_OPERATING_PREFIX = "cf-wc"
CF_INVESTING_PREFIX = "cf-inv"
CF_FINANCING_PREFIX = "cf-fin"


def cash_flow_sign(classification: Classification) -> int:
    """
    Sign turning a natural-balance increase into a cash effect.

    An asset increase consumes cash; a liability or equity increase
    provides it.
    """
    return -1 if classification is Classification.ASSET else 1


def cash_effect(master: MasterAccountRecord, amounts: BucketAmounts) -> Decimal:
    """Cash effect of one master account's figures over one bucket."""
    change = amounts.change
    natural = apply_sign(change, display_sign(master.classification))
    return apply_sign(natural, cash_flow_sign(master.classification))


def cash_flow_categories(
    categories: CashFlowCategories,
) -> dict[str, tuple[SectionFilter, ...]]:
    """Line-id prefix -> the section filters feeding it."""
    return {
        CF_OPERATING_PREFIX: (
            SectionFilter(Classification.ASSET, frozenset(categories.operating_assets)),
            SectionFilter(
                Classification.LIABILITY, frozenset(categories.operating_liabilities),
            ),
        ),
        CF_INVESTING_PREFIX: (
            SectionFilter(Classification.ASSET, frozenset(categories.investing)),
        ),
        CF_FINANCING_PREFIX: (
            SectionFilter(
                Classification.LIABILITY, frozenset(categories.financing_liabilities),
            ),
            SectionFilter(Classification.EQUITY, frozenset(categories.financing_equity)),
        ),
    }


def _change_lines(
    prefix: str,
    filters: tuple[SectionFilter, ...],
    account_map: AccountMap,
    visible: Collection[UUID],
    balances: MasterTable,
    columns: tuple[ColumnHeader, ...],
) -> tuple[LineItem, ...]:
    lines: list[LineItem] = []
    for flt in filters:
        for master in section_masters(flt, account_map, visible):
            buckets = balances.get(master.id, {})
            amounts = {c.key: cash_effect(master, buckets.get(c.key, EMPTY)) for c in columns}
            if all(v == ZERO for v in amounts.values()):
                continue
            lines.append(
                LineItem(
                    id=f"{prefix}-{master.id}",
                    label=master.name,
                    kind=LineKind.CASH_FLOW_CHANGE,
                    amounts=amounts,
                    master_account_id=master.id,
                    account_number=master.account_number,
                )
            )
    return tuple(lines)


def _cf_total(line_id: str, label: str, amounts: Amounts, grand: bool = False) -> LineItem:
    return LineItem(
        id=line_id,
        label=label,
        kind=LineKind.CASH_FLOW_TOTAL,
        amounts=amounts,
        is_grand_total=grand,
        show_dollar_sign=True,
    )


def build_cash_flow(
    categories: CashFlowCategories,
    *,
    account_map: AccountMap,
    columns: tuple[ColumnHeader, ...],
    visible: Collection[UUID],
    balances: MasterTable,
    net_income: Mapping[str, Decimal],
) -> Statement:
    """
    Indirect-method cash flow from balance-sheet deltas.

    ``balances`` are ledger-only master tables; each line is the change in a
    master account's natural balance from the bucket's first month opening
    to its last month close, signed by cash_flow_sign().  ``net_income`` must
    come from the same ledger-only figures, or the net change in cash stops
    matching ending minus beginning cash.
    """
    prefixes = cash_flow_categories(categories)
    net_income_line = _cf_total(
        "cf-net-income", "Net income", {c.key: net_income.get(c.key, ZERO) for c in columns},
    )

    operating = _change_lines(
        CF_OPERATING_PREFIX, prefixes[CF_OPERATING_PREFIX],
        account_map, visible, balances, columns,
    )
    investing = _change_lines(
        CF_INVESTING_PREFIX, prefixes[CF_INVESTING_PREFIX],
        account_map, visible, balances, columns,
    )
    financing = _change_lines(
        CF_FINANCING_PREFIX, prefixes[CF_FINANCING_PREFIX],
        account_map, visible, balances, columns,
    )

    operating_total = _sum_amounts(
        [net_income_line.amounts, *(ln.amounts for ln in operating)], columns,
    )
    investing_total = _sum_amounts((ln.amounts for ln in investing), columns)
    financing_total = _sum_amounts((ln.amounts for ln in financing), columns)
    net_change = _sum_amounts([operating_total, investing_total, financing_total], columns)

    cash_filter = SectionFilter(Classification.ASSET, frozenset(categories.cash))
    cash_masters = section_masters(cash_filter, account_map, visible)
    beginning = {c.key: ZERO for c in columns}
    ending = {c.key: ZERO for c in columns}
    for master in cash_masters:
        buckets = balances.get(master.id, {})
        for c in columns:
            amounts = buckets.get(c.key, EMPTY)
            beginning[c.key] += amounts.beginning_balance
            ending[c.key] += amounts.ending_balance

    sections = (
        StatementSection(
            id="operating",
            title="CASH FLOWS FROM OPERATING ACTIVITIES",
            lines=(net_income_line, *operating),
            total=_cf_total(
                "cf-operating-total",
                "Net cash provided by (used in) operating activities",
                operating_total,
            ),
        ),
        StatementSection(
            id="investing",
            title="CASH FLOWS FROM INVESTING ACTIVITIES",
            lines=investing,
            total=_cf_total(
                "cf-investing-total", "Net cash used in investing activities", investing_total,
            ),
        ),
        StatementSection(
            id="financing",
            title="CASH FLOWS FROM FINANCING ACTIVITIES",
            lines=financing,
            total=_cf_total(
                "cf-financing-total",
                "Net cash provided by (used in) financing activities",
                financing_total,
            ),
        ),
        StatementSection(
            id="cash",
            title="",
            lines=(),
            computed=(
                _cf_total("cf-net-change", "NET INCREASE (DECREASE) IN CASH", net_change),
                _cf_total("cf-cash-beginning", "Cash at beginning of period", beginning),
                _cf_total("cf-cash-ending", "Cash at end of period", ending, grand=True),
            ),
        ),
    )
    return Statement(
        statement_id=StatementId.CASH_FLOW.value,
        title="Statement of Cash Flows",
        columns=columns,
        sections=sections,
    )


# =========================================================================
# Column pivot (breakdown reports)
# =========================================================================


def pivot_columns(
    tables: Mapping[str, MasterTable],
    bucket_key: str,
) -> dict[UUID, BucketTable]:
    """
    Re-key per-column master tables of one bucket into a single master
    table whose "buckets" are the column keys.
    """
    out: dict[UUID, BucketTable] = {}
    for column_key, table in tables.items():
        for master_id, buckets in table.items():
            amounts = buckets.get(bucket_key)
            if amounts is not None:
                out.setdefault(master_id, {})[column_key] = amounts
    return out


"""
Financial Statements Domain Models (``consolidation_modules.statements.models``).

Responsibility
--------------
Frozen dataclass value objects returned by the statements module: the
period-bucketed summary statements, the per-column breakdown statements and
the drill-down report for a single line.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by the pure
builders in ``statements.py`` / ``drilldown.py`` and returned by
``FinancialStatementsService``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Every amounts mapping of a line has exactly one entry per column of its
  statement, in column order.

Audit relevance
---------------
* ``ReportMetadata`` carries the resolved scope, the period range, the flags
  in effect and the generation timestamp from the injected clock, so a report
  can be reproduced.
* ``DrillDownReport.total`` equals the summary value of the same
  line/bucket/column.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from uuid import UUID

from consolidation_kernel.db.types import ZERO
from consolidation_kernel.domain.periods import Granularity, PeriodRange, YearMonth
from consolidation_kernel.exceptions import InvalidScopeError

# =========================================================================
# Enums
# =========================================================================


class Column(str, Enum):
    """Drillable value columns of a summary statement."""

    ACTUAL = "actual"
    BUDGET = "budget"


class ScopeKind(str, Enum):
    ENTITY = "entity"
    ORGANIZATION = "organization"
    REPORTING_ENTITY = "reporting_entity"

    @classmethod
    def parse(cls, value: str | ScopeKind | None) -> ScopeKind:
        if isinstance(value, ScopeKind):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidScopeError(value, "unknown scope kind") from None


class LineKind(str, Enum):
    ACCOUNT = "account"
    SECTION_TOTAL = "section_total"
    COMPUTED = "computed"
    MARGIN = "margin"
    CASH_FLOW_CHANGE = "cash_flow_change"
    CASH_FLOW_TOTAL = "cash_flow_total"


# =========================================================================
# Requests
# =========================================================================


@dataclass(frozen=True)
class StatementRequest:
    """Scope, period range, granularity and flags of one report request."""

    scope_kind: ScopeKind
    scope_id: UUID
    period: PeriodRange
    granularity: Granularity = Granularity.MONTHLY
    include_budget: bool = False
    include_prior_year: bool = False
    include_pro_forma: bool = False
    include_allocations: bool = False
    include_cash_flow: bool = False

    @classmethod
    def of(
        cls,
        scope_kind: ScopeKind | str,
        scope_id: UUID,
        start: tuple[int, int],
        end: tuple[int, int],
        granularity: Granularity | str = Granularity.MONTHLY,
        **flags: bool,
    ) -> StatementRequest:
        """Build a request from raw values; raises InvalidRequestError subclasses."""
        return cls(
            scope_kind=ScopeKind.parse(scope_kind),
            scope_id=scope_id,
            period=PeriodRange(YearMonth(*start), YearMonth(*end)),
            granularity=Granularity.parse(granularity),
            **flags,
        )


# =========================================================================
# Statements
# =========================================================================


@dataclass(frozen=True)
class ColumnHeader:
    """A statement column: a period bucket or a breakdown scope."""

    key: str
    label: str
    full_name: str = ""


@dataclass(frozen=True)
class LineItem:
    """One rendered row; amounts are display-signed and keyed by column."""

    id: str
    label: str
    kind: LineKind
    amounts: Mapping[str, Decimal]
    budget_amounts: Mapping[str, Decimal] | None = None
    prior_year_amounts: Mapping[str, Decimal] | None = None
    master_account_id: UUID | None = None
    account_number: str | None = None
    is_grand_total: bool = False
    show_dollar_sign: bool = False

    def amount(self, column_key: str) -> Decimal:
        return self.amounts.get(column_key, ZERO)

    @property
    def is_margin(self) -> bool:
        return self.kind is LineKind.MARGIN


@dataclass(frozen=True)
class StatementSection:
    """
    A section: its account lines, its subtotal, then the computed lines
    (and margin rows) configured to follow it.
    """

    id: str
    title: str
    lines: tuple[LineItem, ...]
    total: LineItem | None = None
    computed: tuple[LineItem, ...] = ()

    def iter_lines(self) -> Iterator[LineItem]:
        yield from self.lines
        if self.total is not None:
            yield self.total
        yield from self.computed


@dataclass(frozen=True)
class Statement:
    statement_id: str
    title: str
    columns: tuple[ColumnHeader, ...]
    sections: tuple[StatementSection, ...]

    def iter_lines(self) -> Iterator[LineItem]:
        for section in self.sections:
            yield from section.iter_lines()

    def find_line(self, line_id: str) -> LineItem | None:
        return next((line for line in self.iter_lines() if line.id == line_id), None)

    def section(self, section_id: str) -> StatementSection | None:
        return next((s for s in self.sections if s.id == section_id), None)


# =========================================================================
# Reports
# =========================================================================


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every summary and breakdown report."""

    display_name: str
    organization_id: UUID | None
    scope_kind: ScopeKind
    scope_id: UUID
    entity_ids: tuple[UUID, ...]
    granularity: str
    period_start: str  # YYYY-MM
    period_end: str
    buckets: tuple[ColumnHeader, ...]
    generated_at: str  # ISO format timestamp from injected clock
    include_budget: bool = False
    include_prior_year: bool = False
    include_pro_forma: bool = False
    include_allocations: bool = False
    include_cash_flow: bool = False


@dataclass(frozen=True)
class SummaryReport:
    metadata: ReportMetadata
    income_statement: Statement
    balance_sheet: Statement
    cash_flow: Statement | None = None
    is_empty: bool = False


@dataclass(frozen=True)
class BreakdownReport:
    """Statements whose columns are scopes instead of period buckets."""

    metadata: ReportMetadata
    columns: tuple[ColumnHeader, ...]
    income_statement: Statement
    balance_sheet: Statement
    is_empty: bool = False


# =========================================================================
# Drill-down
# =========================================================================


@dataclass(frozen=True)
class DrillDownRow:
    """One (entity, local account) contribution, display-signed."""

    entity_id: UUID
    entity_name: str
    account_id: UUID
    account_name: str
    account_number: str | None
    master_account_id: UUID
    master_account_number: str
    master_account_name: str
    amount: Decimal


@dataclass(frozen=True)
class DrillDownGroup:
    """
    All contributions to one master account within one formula section.

    ``subtotal`` is ``sign`` times the sum of every contribution, including
    rows hidden from ``rows`` because they round to zero.
    """

    section_id: str
    master_account_id: UUID
    label: str
    sign: int
    subtotal: Decimal
    rows: tuple[DrillDownRow, ...] = ()


@dataclass(frozen=True)
class AdjustmentRow:
    """One adjustment entry; ``amount`` is its signed contribution to the total."""

    kind: str
    adjustment_id: UUID
    side: str
    section_id: str
    entity_id: UUID
    entity_name: str
    master_account_id: UUID
    master_account_number: str
    master_account_name: str
    month: str
    description: str
    amount: Decimal


@dataclass(frozen=True)
class DrillDownReport:
    line_id: str
    label: str
    statement_id: str
    column: Column
    bucket_key: str
    bucket_label: str
    total: Decimal
    groups: tuple[DrillDownGroup, ...] = ()
    adjustments: tuple[AdjustmentRow, ...] = ()
    metadata: ReportMetadata | None = field(default=None, compare=False)

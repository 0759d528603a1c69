"""
Financial Statements Service (``consolidation_modules.statements.service``).

Responsibility
--------------
Orchestrates consolidated statement generation -- period-bucketed summary
statements, single-line drill-downs and per-scope breakdowns -- by bridging
the kernel selectors to the pure engines and the pure builders in
``statements.py`` / ``drilldown.py``.  This is a **read-only** service.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``FinancialStatementsService`` is the sole
public entry point.  Constructor: ``session_factory`` + ``clock`` +
``config``.

Data flow
---------
1. Resolve the scope (one session).
2. Concurrently read the master chart, the mapping table, the adjustment
   tables and the active budget versions.
3. Build the AccountMap, then concurrently read ledger balances, prior-year
   balances, budget amounts and local account names.
4. Expand adjustments, aggregate, consolidate, build.

Invariants enforced
-------------------
* Read-only; every worker opens its own Session from the factory and
  closes it.
* A worker exception propagates unchanged; no partial report is returned.
* The consolidated column is always summed directly over the scope's
  entities, never over sub-scope columns.
* Summary and drill-down read the same tables through the same code path,
  so a drill-down total equals the summary value for the same line, bucket,
  column and flags.

Failure modes
-------------
* Invalid request parameters -> InvalidRequestError subclasses, raised
  before any data access.
* Unknown entity / organization / reporting entity -> ReferenceNotFoundError
  subclasses.
* Empty scope -> a valid report with zero totals and ``is_empty=True``.
* Malformed stored rows -> InvalidRecordError.

Audit relevance
---------------
Structured log events are emitted for every report, carrying scope, period,
flags and duration.
"""

from __future__ import annotations

import contextvars
import time
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from consolidation_engines.adjustments import AdjustmentEntry, AdjustmentExpander
from consolidation_engines.aggregation import (
    BalanceAggregator,
    BucketTable,
    consolidate,
    merge_tables,
)
from consolidation_engines.mapping import AccountMap, AccountMapper
from consolidation_kernel.domain.clock import Clock, SystemClock
from consolidation_kernel.domain.keys import ContributionKey, MasterEntityKey
from consolidation_kernel.domain.periods import (
    PeriodBucket,
    PeriodRange,
    build_period_buckets,
    find_bucket,
)
from consolidation_kernel.exceptions import (
    EmptyScopeError,
    InvalidColumnError,
    LineNotResolvableError,
    UnknownPeriodKeyError,
)
from consolidation_kernel.logging_config import LogContext, get_logger
from consolidation_kernel.selectors.adjustment_selector import AdjustmentSelector
from consolidation_kernel.selectors.balance_selector import BalanceSelector
from consolidation_kernel.selectors.budget_selector import BudgetSelector
from consolidation_kernel.selectors.chart_selector import (
    ChartSelector,
    LocalAccountRecord,
)
from consolidation_kernel.selectors.scope_selector import (
    ReportingEntityRecord,
    ScopeSelector,
)
from consolidation_modules.statements.config import StatementId, StatementsConfig
from consolidation_modules.statements.drilldown import (
    DrillDownSource,
    parse_line_id,
    resolve_drill_down,
)
from consolidation_modules.statements.models import (
    BreakdownReport,
    Column,
    ColumnHeader,
    DrillDownReport,
    ReportMetadata,
    ScopeKind,
    StatementRequest,
    SummaryReport,
)
from consolidation_modules.statements.scope import ResolvedScope, ScopeResolver
from consolidation_modules.statements.statements import (
    build_cash_flow,
    build_statement,
    pivot_columns,
)

logger = get_logger("modules.statements.service")

T = TypeVar("T")

OTHER_COLUMN = "other"
CONSOLIDATED_COLUMN = "consolidated"
TOTAL_BUCKET = "total"


@dataclass(frozen=True)
class _Flags:
    budget: bool = False
    prior_year: bool = False
    pro_forma: bool = False
    allocations: bool = False
    local_accounts: bool = False


@dataclass
class _RequestData:
    """Everything loaded and aggregated for one request."""

    scope: ResolvedScope
    is_empty: bool
    buckets: tuple[PeriodBucket, ...]
    account_map: AccountMap
    entries: tuple[AdjustmentEntry, ...]
    contributions: dict[ContributionKey, BucketTable]
    adjustment_table: dict[MasterEntityKey, BucketTable]
    budget: dict[ContributionKey, BucketTable] | None = None
    prior_year: dict[ContributionKey, BucketTable] | None = None
    local_accounts: dict[UUID, LocalAccountRecord] = field(default_factory=dict)

    @property
    def entity_ids(self) -> tuple[UUID, ...]:
        return self.scope.entity_ids

    @property
    def visible(self) -> frozenset[UUID]:
        """Master accounts with in-scope mappings or adjustments."""
        in_scope = set(self.entity_ids)
        masters = {cell.master_account_id for cell in self.account_map.accounts_by_cell}
        masters.update(e.master_account_id for e in self.entries if e.entity_id in in_scope)
        return frozenset(masters)

    def actual_for(self, entity_ids) -> dict[UUID, BucketTable]:
        return merge_tables(
            consolidate(self.contributions, entity_ids),
            consolidate(self.adjustment_table, entity_ids),
        )


class FinancialStatementsService:
    """
    Consolidated financial statement service.

    Contract
    --------
    * Every public method returns a typed report DTO.
    * All methods are **read-only**.

    Guarantees
    ----------
    * Financial logic lives in the engines and the pure builders; this class
      only loads, wires and logs.
    * Clock is injectable for deterministic testing.
    * Independent reads run concurrently, one Session per worker.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        config: StatementsConfig | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or StatementsConfig.with_defaults()
        self._mapper = AccountMapper()
        self._aggregator = BalanceAggregator()
        self._expander = AdjustmentExpander()

        logger.info(
            "statements_service_initialized",
            extra={
                "max_read_workers": self._config.engine.max_read_workers,
                "page_size": self._config.engine.page_size,
            },
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def summary(self, request: StatementRequest) -> SummaryReport:
        """Income statement, balance sheet and optional cash flow by bucket."""
        buckets = build_period_buckets(
            request.period.start, request.period.end, request.granularity,
        )
        with LogContext.bind(scope_kind=request.scope_kind.value):
            t0 = time.monotonic()
            logger.info(
                "summary_started",
                extra={
                    "scope_id": str(request.scope_id),
                    "period_start": request.period.start.key,
                    "period_end": request.period.end.key,
                    "granularity": request.granularity.value,
                    "bucket_count": len(buckets),
                },
            )
            data = self._load(
                request.scope_kind,
                request.scope_id,
                request.period,
                buckets,
                _Flags(
                    budget=request.include_budget,
                    prior_year=request.include_prior_year,
                    pro_forma=request.include_pro_forma,
                    allocations=request.include_allocations,
                ),
            )

            ids = data.entity_ids
            columns = tuple(ColumnHeader(b.key, b.label) for b in buckets)
            visible = data.visible
            actual = data.actual_for(ids)
            budget = consolidate(data.budget, ids) if data.budget is not None else None
            prior = (
                consolidate(data.prior_year, ids) if data.prior_year is not None else None
            )

            income = build_statement(
                self._config.income_statement,
                account_map=data.account_map,
                columns=columns,
                visible=visible,
                actual=actual,
                budget=budget,
                prior_year=prior,
            )
            balance = build_statement(
                self._config.balance_sheet,
                account_map=data.account_map,
                columns=columns,
                visible=visible,
                actual=actual,
                budget=budget,
                prior_year=prior,
            )
            cash_flow = None
            if request.include_cash_flow:
                # Adjustments have no cash leg, so the whole statement is
                # built from ledger figures, net income included.
                ledger = consolidate(data.contributions, ids)
                ledger_income = income
                if request.include_pro_forma or request.include_allocations:
                    ledger_income = build_statement(
                        self._config.income_statement,
                        account_map=data.account_map,
                        columns=columns,
                        visible=visible,
                        actual=ledger,
                    )
                net_income = ledger_income.find_line("net_income")
                cash_flow = build_cash_flow(
                    self._config.cash_flow,
                    account_map=data.account_map,
                    columns=columns,
                    visible=visible,
                    balances=ledger,
                    net_income=net_income.amounts if net_income is not None else {},
                )

            report = SummaryReport(
                metadata=self._metadata(data, request, columns),
                income_statement=income,
                balance_sheet=balance,
                cash_flow=cash_flow,
                is_empty=data.is_empty,
            )
            logger.info(
                "summary_completed",
                extra={
                    "organization_id": str(data.scope.organization_id),
                    "entity_count": len(ids),
                    "is_empty": data.is_empty,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return report

    def drill_down(
        self,
        request: StatementRequest,
        *,
        line_id: str,
        statement_id: StatementId | str,
        bucket_key: str,
        column: Column | str = Column.ACTUAL,
    ) -> DrillDownReport:
        """
        Contributions behind one summary number.

        ``request`` carries the scope, range, granularity and the pro forma /
        allocation flags; budget/prior-year/cash-flow flags are ignored.
        """
        statement_id = _parse_statement_id(statement_id, line_id)
        column = _parse_column(column)
        if statement_id is StatementId.CASH_FLOW and column is not Column.ACTUAL:
            raise InvalidColumnError(column.value)

        buckets = build_period_buckets(
            request.period.start, request.period.end, request.granularity,
        )
        bucket = find_bucket(buckets, bucket_key)
        if bucket is None:
            raise UnknownPeriodKeyError(bucket_key, tuple(b.key for b in buckets))

        layout = (
            None if statement_id is StatementId.CASH_FLOW
            else self._config.layout(statement_id)
        )
        ref = parse_line_id(line_id, statement_id, layout)

        with LogContext.bind(scope_kind=request.scope_kind.value):
            t0 = time.monotonic()
            is_actual = column is Column.ACTUAL
            data = self._load(
                request.scope_kind,
                request.scope_id,
                request.period,
                buckets,
                _Flags(
                    budget=not is_actual,
                    pro_forma=is_actual and request.include_pro_forma,
                    allocations=is_actual and request.include_allocations,
                    local_accounts=True,
                ),
            )
            source = DrillDownSource(
                account_map=data.account_map,
                entity_names={e.id: e.name for e in data.scope.entities},
                local_accounts=data.local_accounts,
                contributions=data.contributions if is_actual else (data.budget or {}),
                adjustments=data.entries if is_actual else (),
            )
            report = resolve_drill_down(
                ref,
                line_id=line_id,
                statement_id=statement_id,
                layout=layout,
                categories=self._config.cash_flow,
                bucket=bucket,
                column=column,
                source=source,
                zero_threshold=self._config.engine.zero_threshold,
            )
            logger.info(
                "drill_down_completed",
                extra={
                    "line_id": line_id,
                    "statement_id": statement_id.value,
                    "bucket_key": bucket_key,
                    "column": column.value,
                    "total": str(report.total),
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return report

    def reporting_entity_breakdown(
        self,
        organization_id: UUID,
        period: PeriodRange,
        *,
        include_pro_forma: bool = False,
        include_allocations: bool = False,
    ) -> BreakdownReport:
        """
        One column per reporting entity with members, "other" for entities in
        no reporting entity, and "consolidated" over every entity.

        An entity in several reporting entities contributes, adjustments
        included, to each of their columns; "consolidated" counts it once.
        """
        request = StatementRequest(
            scope_kind=ScopeKind.ORGANIZATION,
            scope_id=organization_id,
            period=period,
            include_pro_forma=include_pro_forma,
            include_allocations=include_allocations,
        )
        with LogContext.bind(
            organization_id=str(organization_id),
            scope_kind=ScopeKind.ORGANIZATION.value,
        ):
            groups = self._read(
                lambda s: self._scope_selector(s).reporting_entities_for_organization(
                    organization_id,
                ),
            )
            data = self._load(
                ScopeKind.ORGANIZATION,
                organization_id,
                period,
                (period.as_bucket(TOTAL_BUCKET),),
                _Flags(pro_forma=include_pro_forma, allocations=include_allocations),
            )
            all_ids = set(data.entity_ids)

            column_entities: dict[str, tuple[UUID, ...]] = {}
            headers: list[ColumnHeader] = []
            assigned: set[UUID] = set()
            for group in groups:
                members = tuple(m for m in group.member_ids if m in all_ids)
                if not members:
                    continue
                column_entities[str(group.id)] = members
                headers.append(_group_header(group))
                assigned.update(members)
            unassigned = tuple(e for e in data.entity_ids if e not in assigned)
            if unassigned:
                column_entities[OTHER_COLUMN] = unassigned
                headers.append(ColumnHeader(OTHER_COLUMN, "Other", "Unassigned Entities"))
            column_entities[CONSOLIDATED_COLUMN] = data.entity_ids
            headers.append(
                ColumnHeader(CONSOLIDATED_COLUMN, "Consolidated", data.scope.display_name),
            )

            report = self._breakdown(data, request, column_entities, tuple(headers))
            logger.info(
                "reporting_entity_breakdown_completed",
                extra={
                    "columns": [h.key for h in headers],
                    "entity_count": len(all_ids),
                },
            )
            return report

    def entity_breakdown(self, request: StatementRequest) -> BreakdownReport:
        """One column per in-scope entity plus "consolidated"."""
        with LogContext.bind(scope_kind=request.scope_kind.value):
            data = self._load(
                request.scope_kind,
                request.scope_id,
                request.period,
                (request.period.as_bucket(TOTAL_BUCKET),),
                _Flags(
                    pro_forma=request.include_pro_forma,
                    allocations=request.include_allocations,
                ),
            )
            column_entities: dict[str, tuple[UUID, ...]] = {}
            headers: list[ColumnHeader] = []
            for entity in data.scope.entities:
                column_entities[str(entity.id)] = (entity.id,)
                headers.append(ColumnHeader(str(entity.id), entity.code or entity.name, entity.name))
            column_entities[CONSOLIDATED_COLUMN] = data.entity_ids
            consolidated_label = (
                data.scope.display_name
                if data.scope.kind is ScopeKind.REPORTING_ENTITY else "Consolidated"
            )
            headers.append(
                ColumnHeader(CONSOLIDATED_COLUMN, consolidated_label, data.scope.display_name),
            )

            report = self._breakdown(data, request, column_entities, tuple(headers))
            logger.info(
                "entity_breakdown_completed",
                extra={"columns": [h.key for h in headers]},
            )
            return report

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _breakdown(
        self,
        data: _RequestData,
        request: StatementRequest,
        column_entities: Mapping[str, tuple[UUID, ...]],
        headers: tuple[ColumnHeader, ...],
    ) -> BreakdownReport:
        tables = {key: data.actual_for(ids) for key, ids in column_entities.items()}
        actual = pivot_columns(tables, TOTAL_BUCKET)
        visible = data.visible
        statements = [
            build_statement(
                layout,
                account_map=data.account_map,
                columns=headers,
                visible=visible,
                actual=actual,
            )
            for layout in (self._config.income_statement, self._config.balance_sheet)
        ]
        return BreakdownReport(
            metadata=self._metadata(
                data, request, (ColumnHeader(TOTAL_BUCKET, data.buckets[0].label),),
                granularity=TOTAL_BUCKET,
            ),
            columns=headers,
            income_statement=statements[0],
            balance_sheet=statements[1],
            is_empty=data.is_empty,
        )

    def _metadata(
        self,
        data: _RequestData,
        request: StatementRequest,
        buckets: tuple[ColumnHeader, ...],
        granularity: str | None = None,
    ) -> ReportMetadata:
        return ReportMetadata(
            display_name=data.scope.display_name,
            organization_id=data.scope.organization_id,
            scope_kind=data.scope.kind,
            scope_id=data.scope.scope_id,
            entity_ids=data.entity_ids,
            granularity=granularity or request.granularity.value,
            period_start=request.period.start.key,
            period_end=request.period.end.key,
            buckets=buckets,
            generated_at=self._clock.now().isoformat(),
            include_budget=request.include_budget,
            include_prior_year=request.include_prior_year,
            include_pro_forma=request.include_pro_forma,
            include_allocations=request.include_allocations,
            include_cash_flow=request.include_cash_flow,
        )

    def _scope_selector(self, session: Session) -> ScopeSelector:
        return self._selector(ScopeSelector, session)

    def _selector(self, cls: type[T], session: Session) -> T:
        engine = self._config.engine
        return cls(session, page_size=engine.page_size, id_chunk_size=engine.id_chunk_size)

    def _read(self, fn: Callable[[Session], T]) -> T:
        session = self._session_factory()
        try:
            return fn(session)
        finally:
            session.close()

    def _read_all(self, tasks: Mapping[str, Callable[[Session], Any]]) -> dict[str, Any]:
        """Run independent reads concurrently, each in its own Session."""
        if not tasks:
            return {}
        workers = min(self._config.engine.max_read_workers, len(tasks))
        if workers == 1:
            return {name: self._read(fn) for name, fn in tasks.items()}
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="statements-read") as pool:
            futures = {
                name: pool.submit(contextvars.copy_context().run, self._read, fn)
                for name, fn in tasks.items()
            }
            return {name: future.result() for name, future in futures.items()}

    def _resolve_scope(self, kind: ScopeKind, scope_id: UUID) -> tuple[ResolvedScope, bool]:
        try:
            scope = self._read(
                lambda s: ScopeResolver(self._scope_selector(s)).resolve(kind, scope_id),
            )
        except EmptyScopeError as exc:
            scope = ResolvedScope(
                kind=kind,
                scope_id=scope_id,
                organization_id=UUID(exc.organization_id),
                display_name=exc.display_name,
                entities=(),
            )
            return scope, True
        return scope, False

    def _load(
        self,
        kind: ScopeKind,
        scope_id: UUID,
        period: PeriodRange,
        buckets: tuple[PeriodBucket, ...],
        flags: _Flags,
    ) -> _RequestData:
        scope, is_empty = self._resolve_scope(kind, scope_id)
        org_id = scope.organization_id
        ids = scope.entity_ids

        first_reads: dict[str, Callable[[Session], Any]] = {
            "masters": lambda s: self._selector(ChartSelector, s).master_accounts(org_id),
            "mappings": lambda s: self._selector(ChartSelector, s).mappings(org_id, ids),
        }
        if flags.pro_forma:
            first_reads["pro_forma"] = (
                lambda s: self._selector(AdjustmentSelector, s).pro_forma(org_id, period)
            )
        if flags.allocations:
            first_reads["allocations"] = (
                lambda s: self._selector(AdjustmentSelector, s).allocations(org_id)
            )
        if flags.budget:
            years = sorted({m.year for m in period.months})
            first_reads["budget_versions"] = (
                lambda s: self._selector(BudgetSelector, s).active_versions(ids, years)
            )
        first = self._read_all(first_reads)

        account_map = self._mapper.build(
            master_accounts=first["masters"],
            mappings=first["mappings"],
            entity_ids=ids,
        )
        account_ids = account_map.local_account_ids
        versions = list(first.get("budget_versions", {}).values())
        prior_period = PeriodRange(period.start.add_years(-1), period.end.add_years(-1))

        second_reads: dict[str, Callable[[Session], Any]] = {
            "balances": lambda s: self._selector(BalanceSelector, s).balances(account_ids, period),
        }
        if flags.prior_year:
            second_reads["prior_balances"] = (
                lambda s: self._selector(BalanceSelector, s).balances(account_ids, prior_period)
            )
        if flags.budget:
            second_reads["budget_amounts"] = (
                lambda s: self._selector(BudgetSelector, s).amounts(versions, period)
            )
        if flags.local_accounts:
            second_reads["local_accounts"] = (
                lambda s: self._selector(ChartSelector, s).local_accounts(account_ids)
            )
        second = self._read_all(second_reads)

        in_scope = set(ids)
        entries = tuple(
            e for e in self._expander.expand(
                pro_forma=first.get("pro_forma", ()),
                allocations=first.get("allocations", ()),
                period=period,
                include_pro_forma=flags.pro_forma,
                include_allocations=flags.allocations,
            )
            if e.entity_id in in_scope
        )

        budget = None
        if flags.budget:
            budget = self._aggregator.aggregate_budget(
                amounts=second["budget_amounts"],
                version_entities={v.id: v.entity_id for v in versions},
                account_map=account_map,
                buckets=buckets,
            )
        prior_year = None
        if flags.prior_year:
            prior_year = self._aggregator.aggregate_balances(
                balances=second["prior_balances"],
                account_map=account_map,
                buckets=tuple(b.shifted(-1) for b in buckets),
            )

        return _RequestData(
            scope=scope,
            is_empty=is_empty,
            buckets=buckets,
            account_map=account_map,
            entries=entries,
            contributions=self._aggregator.aggregate_balances(
                balances=second["balances"],
                account_map=account_map,
                buckets=buckets,
            ),
            adjustment_table=self._aggregator.aggregate_adjustments(
                entries=entries,
                buckets=buckets,
            ),
            budget=budget,
            prior_year=prior_year,
            local_accounts={a.id: a for a in second.get("local_accounts", ())},
        )


def _group_header(group: ReportingEntityRecord) -> ColumnHeader:
    return ColumnHeader(str(group.id), group.code or group.name, group.name)


def _parse_statement_id(value: StatementId | str, line_id: str) -> StatementId:
    if isinstance(value, StatementId):
        return value
    try:
        return StatementId(str(value))
    except ValueError:
        raise LineNotResolvableError(line_id, str(value), "unknown statement") from None


def _parse_column(value: Column | str) -> Column:
    if isinstance(value, Column):
        return value
    try:
        return Column(str(value))
    except ValueError:
        raise InvalidColumnError(str(value)) from None

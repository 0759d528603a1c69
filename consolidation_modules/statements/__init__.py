"""
Financial Statements Module (``consolidation_modules.statements``).

Responsibility
--------------
Read-only module that renders consolidated, period-bucketed Income
Statement, Balance Sheet and (indirect-method) Cash Flow views over any
entity scope, with budget and prior-year columns, pro forma and allocation
adjustments, a drill-down back to source rows, and per-scope breakdowns.

Architecture position
---------------------
**Modules layer** -- a pure read-only service.  All statement and
drill-down construction is implemented as pure functions over engine
outputs.

Invariants enforced
-------------------
* Displayed signs follow each classification's natural sign.
* Drill-down totals equal the summary value of the same line, bucket and
  column.
* Consolidated columns are summed directly over entities.

Failure modes
-------------
* Unknown scope ids -> ReferenceNotFoundError subclasses.
* Empty scope -> empty report with zero totals.

Audit relevance
---------------
Every number on a statement can be traced to the ledger rows, budget rows
and adjustment entries behind it.
"""

from consolidation_modules.statements.config import (
    CashFlowCategories,
    ComputedLine,
    ComputedLineKind,
    EngineSettings,
    FormulaOperand,
    SectionConfig,
    Sign,
    StatementId,
    StatementLayout,
    StatementsConfig,
)
from consolidation_modules.statements.models import (
    AdjustmentRow,
    BreakdownReport,
    Column,
    ColumnHeader,
    DrillDownGroup,
    DrillDownReport,
    DrillDownRow,
    LineItem,
    LineKind,
    ReportMetadata,
    ScopeKind,
    Statement,
    StatementRequest,
    StatementSection,
    SummaryReport,
)
from consolidation_modules.statements.service import FinancialStatementsService

__all__ = [
    "AdjustmentRow",
    "BreakdownReport",
    "CashFlowCategories",
    "Column",
    "ColumnHeader",
    "ComputedLine",
    "ComputedLineKind",
    "DrillDownGroup",
    "DrillDownReport",
    "DrillDownRow",
    "EngineSettings",
    "FinancialStatementsService",
    "FormulaOperand",
    "LineItem",
    "LineKind",
    "ReportMetadata",
    "ScopeKind",
    "SectionConfig",
    "Sign",
    "Statement",
    "StatementId",
    "StatementLayout",
    "StatementRequest",
    "StatementSection",
    "StatementsConfig",
    "SummaryReport",
]

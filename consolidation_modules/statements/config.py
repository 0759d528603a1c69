"""
Statements Configuration Schema.

Defines which master accounts land in which statement section, the signed
formulas of computed lines, the account types feeding each cash-flow
category, and engine settings (paging, concurrency, zero threshold).

Computed lines are typed data: a ComputedLineKind plus an explicit operand
list of (section_id, Sign).  A layout validates itself on construction, so a
formula naming an unknown or later section is rejected before any report is
built.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Self

import yaml

from consolidation_engines.aggregation import AmountBasis
from consolidation_kernel.exceptions import StatementConfigError
from consolidation_kernel.logging_config import get_logger
from consolidation_kernel.models.chart import Classification
from consolidation_kernel.selectors.chart_selector import SectionFilter

logger = get_logger("modules.statements.config")


class StatementId(str, Enum):
    INCOME_STATEMENT = "income_statement"
    BALANCE_SHEET = "balance_sheet"
    CASH_FLOW = "cash_flow"


class Sign(IntEnum):
    PLUS = 1
    MINUS = -1

    @classmethod
    def parse(cls, value: Any) -> Sign:
        if isinstance(value, Sign):
            return value
        text = str(value).strip().lower()
        if text in ("+", "1", "+1", "plus"):
            return cls.PLUS
        if text in ("-", "-1", "minus"):
            return cls.MINUS
        raise ValueError(f"Unknown formula sign: {value!r}")


class ComputedLineKind(str, Enum):
    SUBTOTAL = "subtotal"
    GRAND_TOTAL = "grand_total"


@dataclass(frozen=True)
class SectionConfig:
    """A statement section: one classification and a set of account types."""

    id: str
    title: str
    classification: Classification
    account_types: tuple[str, ...]

    @property
    def filter(self) -> SectionFilter:
        return SectionFilter(self.classification, frozenset(self.account_types))

    @property
    def total_line_id(self) -> str:
        return f"{self.id}-total"

    @property
    def total_label(self) -> str:
        return f"Total {self.title}".strip()


@dataclass(frozen=True)
class FormulaOperand:
    section_id: str
    sign: Sign = Sign.PLUS


@dataclass(frozen=True)
class ComputedLine:
    """A signed sum of section totals shown after ``after_section``."""

    id: str
    label: str
    after_section: str
    operands: tuple[FormulaOperand, ...]
    kind: ComputedLineKind = ComputedLineKind.SUBTOTAL
    margin_label: str | None = None

    @property
    def is_grand_total(self) -> bool:
        return self.kind is ComputedLineKind.GRAND_TOTAL

    @property
    def margin_line_id(self) -> str:
        return f"{self.id}_margin"


@dataclass(frozen=True)
class StatementLayout:
    """
    Ordered sections and computed lines of one statement.

    Invariants (checked on construction, StatementConfigError otherwise):
        - section and computed-line ids are unique and disjoint;
        - every computed line follows an existing section;
        - every operand names a section at or before that position;
        - a line with a margin row follows the ``margin_base`` section.
    """

    statement_id: StatementId
    title: str
    basis: AmountBasis
    sections: tuple[SectionConfig, ...]
    computed_lines: tuple[ComputedLine, ...] = ()
    margin_base: str | None = None

    def __post_init__(self) -> None:
        sid = self.statement_id.value
        position: dict[str, int] = {}
        for i, section in enumerate(self.sections):
            if section.id in position:
                raise StatementConfigError(sid, f"duplicate section id {section.id!r}")
            if "-" in section.id:
                raise StatementConfigError(sid, f"section id {section.id!r} contains '-'")
            position[section.id] = i

        seen: set[str] = set()
        for line in self.computed_lines:
            if line.id in position or line.id in seen:
                raise StatementConfigError(sid, f"duplicate line id {line.id!r}")
            seen.add(line.id)
            if line.after_section not in position:
                raise StatementConfigError(
                    sid, f"{line.id!r} follows unknown section {line.after_section!r}",
                )
            if not line.operands:
                raise StatementConfigError(sid, f"{line.id!r} has no operands")
            for op in line.operands:
                if op.section_id not in position:
                    raise StatementConfigError(
                        sid, f"{line.id!r} references unknown section {op.section_id!r}",
                    )
                if position[op.section_id] > position[line.after_section]:
                    raise StatementConfigError(
                        sid, f"{line.id!r} references later section {op.section_id!r}",
                    )
            if line.margin_label is not None and (
                self.margin_base not in position
                or position[self.margin_base] > position[line.after_section]
            ):
                raise StatementConfigError(
                    sid, f"{line.id!r} has a margin row without a preceding margin_base",
                )

    def section(self, section_id: str) -> SectionConfig | None:
        return next((s for s in self.sections if s.id == section_id), None)

    def computed(self, line_id: str) -> ComputedLine | None:
        return next((c for c in self.computed_lines if c.id == line_id), None)

    def lines_after(self, section_id: str) -> tuple[ComputedLine, ...]:
        return tuple(c for c in self.computed_lines if c.after_section == section_id)


@dataclass(frozen=True)
class CashFlowCategories:
    """Native account types feeding each indirect-method cash-flow section."""

    cash: tuple[str, ...] = ("Bank",)
    operating_assets: tuple[str, ...] = ("Accounts Receivable", "Other Current Asset")
    operating_liabilities: tuple[str, ...] = (
        "Accounts Payable", "Credit Card", "Other Current Liability",
    )
    investing: tuple[str, ...] = ("Fixed Asset", "Other Asset")
    financing_liabilities: tuple[str, ...] = ("Long Term Liability",)
    financing_equity: tuple[str, ...] = ("Equity",)


@dataclass
class EngineSettings:
    """Data-access and computation knobs."""

    page_size: int = 1000
    id_chunk_size: int = 500
    max_read_workers: int = 4
    # Drill-down rows whose magnitude rounds to zero at cents are hidden
    zero_threshold: Decimal = Decimal("0.005")

    def __post_init__(self):
        if self.page_size < 1:
            raise ValueError("page_size must be positive")
        if self.id_chunk_size < 1:
            raise ValueError("id_chunk_size must be positive")
        if self.max_read_workers < 1:
            raise ValueError("max_read_workers must be positive")
        self.zero_threshold = Decimal(str(self.zero_threshold))
        if self.zero_threshold < 0:
            raise ValueError("zero_threshold cannot be negative")


# =========================================================================
# Default layouts
# =========================================================================


def _op(section_id: str, sign: Sign = Sign.PLUS) -> FormulaOperand:
    return FormulaOperand(section_id, sign)


def default_income_statement() -> StatementLayout:
    return StatementLayout(
        statement_id=StatementId.INCOME_STATEMENT,
        title="Income Statement",
        basis=AmountBasis.NET_CHANGE,
        margin_base="revenue",
        sections=(
            SectionConfig("revenue", "Revenue", Classification.REVENUE, ("Income",)),
            SectionConfig(
                "direct_operating_costs", "Direct Operating Costs",
                Classification.EXPENSE, ("Cost of Goods Sold",),
            ),
            SectionConfig(
                "other_operating_costs", "Other Operating Costs",
                Classification.EXPENSE, ("Expense",),
            ),
            SectionConfig("other_expense", "", Classification.EXPENSE, ("Other Expense",)),
            SectionConfig("other_income", "", Classification.REVENUE, ("Other Income",)),
        ),
        computed_lines=(
            ComputedLine(
                id="gross_margin",
                label="Gross Margin",
                after_section="direct_operating_costs",
                operands=(_op("revenue"), _op("direct_operating_costs", Sign.MINUS)),
                margin_label="Gross Margin %",
            ),
            ComputedLine(
                id="operating_margin",
                label="Total Operating Margin",
                after_section="other_operating_costs",
                operands=(
                    _op("revenue"),
                    _op("direct_operating_costs", Sign.MINUS),
                    _op("other_operating_costs", Sign.MINUS),
                ),
                margin_label="Operating Margin %",
            ),
            ComputedLine(
                id="net_income",
                label="Net Income",
                after_section="other_income",
                kind=ComputedLineKind.GRAND_TOTAL,
                operands=(
                    _op("revenue"),
                    _op("direct_operating_costs", Sign.MINUS),
                    _op("other_operating_costs", Sign.MINUS),
                    _op("other_income"),
                    _op("other_expense", Sign.MINUS),
                ),
                margin_label="Net Income Margin %",
            ),
        ),
    )


def default_balance_sheet() -> StatementLayout:
    return StatementLayout(
        statement_id=StatementId.BALANCE_SHEET,
        title="Balance Sheet",
        basis=AmountBasis.ENDING_BALANCE,
        sections=(
            SectionConfig(
                "current_assets", "CURRENT ASSETS", Classification.ASSET,
                ("Bank", "Accounts Receivable", "Other Current Asset"),
            ),
            SectionConfig(
                "fixed_assets", "PROPERTY AND EQUIPMENT, NET",
                Classification.ASSET, ("Fixed Asset",),
            ),
            SectionConfig("other_assets", "OTHER ASSETS", Classification.ASSET, ("Other Asset",)),
            SectionConfig(
                "current_liabilities", "CURRENT LIABILITIES", Classification.LIABILITY,
                ("Accounts Payable", "Credit Card", "Other Current Liability"),
            ),
            SectionConfig(
                "long_term_liabilities", "LONG-TERM LIABILITIES",
                Classification.LIABILITY, ("Long Term Liability",),
            ),
            SectionConfig("equity", "STOCKHOLDERS' EQUITY", Classification.EQUITY, ("Equity",)),
        ),
        computed_lines=(
            ComputedLine(
                "total_current_assets", "Total current assets",
                "current_assets", (_op("current_assets"),),
            ),
            ComputedLine(
                "total_assets", "TOTAL ASSETS", "other_assets",
                (_op("current_assets"), _op("fixed_assets"), _op("other_assets")),
                kind=ComputedLineKind.GRAND_TOTAL,
            ),
            ComputedLine(
                "total_current_liabilities", "Total current liabilities",
                "current_liabilities", (_op("current_liabilities"),),
            ),
            ComputedLine(
                "total_liabilities", "Total liabilities", "long_term_liabilities",
                (_op("current_liabilities"), _op("long_term_liabilities")),
            ),
            ComputedLine(
                "total_equity", "Total stockholders' equity", "equity", (_op("equity"),),
            ),
            ComputedLine(
                "total_liabilities_and_equity",
                "TOTAL LIABILITIES AND STOCKHOLDERS' EQUITY",
                "equity",
                (
                    _op("current_liabilities"),
                    _op("long_term_liabilities"),
                    _op("equity"),
                ),
                kind=ComputedLineKind.GRAND_TOTAL,
            ),
        ),
    )


# =========================================================================
# Parsing
# =========================================================================


def _parse_layout(
    statement_id: StatementId,
    data: dict[str, Any],
    default: StatementLayout,
) -> StatementLayout:
    sid = statement_id.value
    try:
        sections = tuple(
            SectionConfig(
                id=s["id"],
                title=s.get("title", ""),
                classification=Classification(s["classification"]),
                account_types=tuple(s.get("account_types", ())),
            )
            for s in data.get("sections", ())
        ) or default.sections
        computed = tuple(
            ComputedLine(
                id=c["id"],
                label=c["label"],
                after_section=c["after"],
                operands=tuple(
                    FormulaOperand(op["section"], Sign.parse(op.get("sign", "+")))
                    for op in c["operands"]
                ),
                kind=ComputedLineKind(c.get("kind", ComputedLineKind.SUBTOTAL.value)),
                margin_label=c.get("margin_label"),
            )
            for c in data.get("computed_lines", ())
        ) if "computed_lines" in data else default.computed_lines
    except (KeyError, TypeError, ValueError) as exc:
        raise StatementConfigError(sid, f"malformed layout: {exc}") from exc

    return StatementLayout(
        statement_id=statement_id,
        title=data.get("title", default.title),
        basis=default.basis,
        sections=sections,
        computed_lines=computed,
        margin_base=data.get("margin_base", default.margin_base),
    )


def _parse_block(name: str, build: Callable[[dict], Any], data: Any) -> Any:
    try:
        return build(data)
    except (AttributeError, TypeError, ValueError, ArithmeticError) as exc:
        raise StatementConfigError(name, f"malformed settings: {exc}") from exc


@dataclass
class StatementsConfig:
    """
    Configuration schema for the financial statements module.

    Controls statement layouts, cash-flow categories and engine settings.
    """

    income_statement: StatementLayout = field(default_factory=default_income_statement)
    balance_sheet: StatementLayout = field(default_factory=default_balance_sheet)
    cash_flow: CashFlowCategories = field(default_factory=CashFlowCategories)
    engine: EngineSettings = field(default_factory=EngineSettings)

    def __post_init__(self):
        if self.income_statement.basis is not AmountBasis.NET_CHANGE:
            raise StatementConfigError(
                StatementId.INCOME_STATEMENT.value, "must use net-change amounts",
            )
        if self.balance_sheet.basis is not AmountBasis.ENDING_BALANCE:
            raise StatementConfigError(
                StatementId.BALANCE_SHEET.value, "must use ending-balance amounts",
            )

    def layout(self, statement_id: StatementId) -> StatementLayout:
        match statement_id:
            case StatementId.INCOME_STATEMENT:
                return self.income_statement
            case StatementId.BALANCE_SHEET:
                return self.balance_sheet
        raise ValueError(f"{statement_id} has no section layout")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("statements_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        logger.info(
            "statements_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        kwargs: dict[str, Any] = {}
        if "income_statement" in data:
            kwargs["income_statement"] = _parse_layout(
                StatementId.INCOME_STATEMENT, data["income_statement"],
                default_income_statement(),
            )
        if "balance_sheet" in data:
            kwargs["balance_sheet"] = _parse_layout(
                StatementId.BALANCE_SHEET, data["balance_sheet"],
                default_balance_sheet(),
            )
        if "cash_flow" in data:
            kwargs["cash_flow"] = _parse_block(
                "cash_flow", lambda d: CashFlowCategories(**{k: tuple(v) for k, v in d.items()}),
                data["cash_flow"],
            )
        if "engine" in data:
            kwargs["engine"] = _parse_block("engine", lambda d: EngineSettings(**d), data["engine"])
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Create config from a YAML file."""
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        return cls.from_dict(data)

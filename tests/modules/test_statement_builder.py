"""
Tests for the pure statement builders.

Covers:
- Display signs (credit-normal classifications flipped, no negative zero)
- Section totals, computed lines and margin rows
- Hidden master accounts (no in-scope mapping)
- Indirect-method cash flow lines and totals
- Column pivot
- Line id parsing for drill-down
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from consolidation_engines.aggregation import BucketAmounts
from consolidation_engines.mapping import AccountMap
from consolidation_kernel.exceptions import LineNotResolvableError
from consolidation_kernel.models.chart import Classification
from consolidation_kernel.selectors.chart_selector import MasterAccountRecord
from consolidation_modules.statements.config import (
    CashFlowCategories,
    StatementId,
    default_balance_sheet,
    default_income_statement,
)
from consolidation_modules.statements.drilldown import (
    AccountRef,
    CashFlowChangeRef,
    ComputedRef,
    SectionTotalRef,
    parse_line_id,
)
from consolidation_modules.statements.models import ColumnHeader, LineKind
from consolidation_modules.statements.statements import (
    apply_sign,
    build_cash_flow,
    build_statement,
    cash_effect,
    margin_ratio,
    pivot_columns,
)

ORG = uuid4()
JAN, FEB = "2025-01", "2025-02"
COLUMNS = (ColumnHeader(JAN, "Jan-25"), ColumnHeader(FEB, "Feb-25"))


def master(number, name, classification, account_type):
    return MasterAccountRecord(uuid4(), ORG, number, name, classification, account_type)


SALES = master("4000", "Sales", Classification.REVENUE, "Income")
COGS = master("5000", "Cost of Sales", Classification.EXPENSE, "Cost of Goods Sold")
RENT = master("6000", "Rent", Classification.EXPENSE, "Expense")
TRAVEL = master("6900", "Travel", Classification.EXPENSE, "Expense")
CASH = master("1000", "Cash", Classification.ASSET, "Bank")
AR = master("1100", "Receivables", Classification.ASSET, "Accounts Receivable")
EQUIPMENT = master("1500", "Equipment", Classification.ASSET, "Fixed Asset")
AP = master("2000", "Payables", Classification.LIABILITY, "Accounts Payable")
EQUITY = master("3000", "Equity", Classification.EQUITY, "Equity")

ACCOUNT_MAP = AccountMap(
    master_accounts=(SALES, COGS, RENT, TRAVEL, CASH, AR, EQUIPMENT, AP, EQUITY),
)
VISIBLE = frozenset(m.id for m in ACCOUNT_MAP.master_accounts if m is not TRAVEL)


def cell(net="0", ending="0", beginning="0"):
    return BucketAmounts(
        net_change=Decimal(net),
        ending_balance=Decimal(ending),
        beginning_balance=Decimal(beginning),
    )


ACTUAL = {
    SALES.id: {JAN: cell(net="-1000"), FEB: cell(net="-2000")},
    COGS.id: {JAN: cell(net="400"), FEB: cell(net="800")},
    RENT.id: {JAN: cell(net="100"), FEB: cell(net="100")},
    CASH.id: {JAN: cell(ending="5500", beginning="5000"), FEB: cell(ending="6000", beginning="5500")},
    AR.id: {JAN: cell(ending="200"), FEB: cell(ending="150", beginning="200")},
    EQUIPMENT.id: {FEB: cell(ending="700")},
    AP.id: {JAN: cell(ending="-300"), FEB: cell(ending="-250", beginning="-300")},
    EQUITY.id: {JAN: cell(ending="-5000", beginning="-5000"), FEB: cell(ending="-5000", beginning="-5000")},
}


def income_statement(**kwargs):
    return build_statement(
        default_income_statement(),
        account_map=ACCOUNT_MAP,
        columns=COLUMNS,
        visible=VISIBLE,
        actual=ACTUAL,
        **kwargs,
    )


class TestSigns:
    def test_apply_sign_never_negative_zero(self):
        assert str(apply_sign(Decimal("0"), -1)) == "0"
        assert apply_sign(Decimal("5"), -1) == Decimal("-5")

    def test_margin_ratio(self):
        assert margin_ratio(Decimal("1350"), Decimal("1750")) == Decimal("0.7714")
        assert margin_ratio(Decimal("10"), Decimal("0")) == Decimal("0")


class TestIncomeStatement:
    def setup_method(self):
        self.statement = income_statement()

    def test_revenue_displayed_positive(self):
        line = self.statement.find_line(f"revenue-{SALES.id}")
        assert line.amounts == {JAN: Decimal("1000"), FEB: Decimal("2000")}
        assert line.kind is LineKind.ACCOUNT
        assert line.show_dollar_sign

    def test_computed_lines(self):
        assert self.statement.find_line("gross_margin").amounts[JAN] == Decimal("600")
        assert self.statement.find_line("operating_margin").amounts[JAN] == Decimal("500")
        assert self.statement.find_line("net_income").amounts[FEB] == Decimal("1100")
        assert self.statement.find_line("net_income").is_grand_total

    def test_margin_rows(self):
        margin = self.statement.find_line("gross_margin_margin")
        assert margin.kind is LineKind.MARGIN
        assert margin.amounts[JAN] == Decimal("0.6")
        assert margin.amounts[FEB] == Decimal("0.6")

    def test_masters_without_in_scope_data_hidden(self):
        section = self.statement.section("other_operating_costs")
        assert [ln.master_account_id for ln in section.lines] == [RENT.id]

    def test_empty_sections_keep_zero_totals(self):
        total = self.statement.find_line("other_income-total")
        assert total.amounts == {JAN: Decimal("0"), FEB: Decimal("0")}
        assert total.label == "Total"

    def test_line_order_within_section(self):
        ids = [ln.id for ln in self.statement.section("direct_operating_costs").iter_lines()]
        assert ids == [
            f"direct_operating_costs-{COGS.id}",
            "direct_operating_costs-total",
            "gross_margin",
            "gross_margin_margin",
        ]

    def test_budget_and_prior_year_columns(self):
        budget = {SALES.id: {JAN: cell(net="-900")}}
        statement = income_statement(budget=budget, prior_year={})

        revenue = statement.find_line("revenue-total")
        assert revenue.budget_amounts[JAN] == Decimal("900")
        assert revenue.prior_year_amounts == {JAN: Decimal("0"), FEB: Decimal("0")}
        assert statement.find_line("net_income").budget_amounts[JAN] == Decimal("900")

    def test_budget_absent_when_not_requested(self):
        assert self.statement.find_line("net_income").budget_amounts is None


class TestBalanceSheet:
    def test_totals(self):
        statement = build_statement(
            default_balance_sheet(),
            account_map=ACCOUNT_MAP,
            columns=COLUMNS,
            visible=VISIBLE,
            actual=ACTUAL,
        )

        assert statement.find_line("total_current_assets").amounts[JAN] == Decimal("5700")
        assert statement.find_line("total_assets").amounts[FEB] == Decimal("6850")
        assert statement.find_line(f"current_liabilities-{AP.id}").amounts[JAN] == Decimal("300")
        assert statement.find_line("total_liabilities_and_equity").amounts[JAN] == Decimal("5300")


class TestCashFlow:
    def setup_method(self):
        self.statement = build_cash_flow(
            CashFlowCategories(),
            account_map=ACCOUNT_MAP,
            columns=COLUMNS,
            visible=VISIBLE,
            balances=ACTUAL,
            net_income={JAN: Decimal("500"), FEB: Decimal("1100")},
        )

    def test_asset_increase_consumes_cash(self):
        assert cash_effect(AR, cell(ending="200")) == Decimal("-200")
        assert cash_effect(AP, cell(ending="-300")) == Decimal("300")

    def test_operating_section(self):
        assert self.statement.find_line(f"cf-wc-{AR.id}").amounts == {
            JAN: Decimal("-200"), FEB: Decimal("50"),
        }
        assert self.statement.find_line("cf-operating-total").amounts == {
            JAN: Decimal("600"), FEB: Decimal("1100"),
        }

    def test_investing_and_zero_lines(self):
        assert self.statement.find_line(f"cf-inv-{EQUIPMENT.id}").amounts[FEB] == Decimal("-700")
        # Equity never moves, so it has no line
        assert self.statement.find_line(f"cf-fin-{EQUITY.id}") is None
        assert self.statement.find_line("cf-financing-total").amounts[JAN] == Decimal("0")

    def test_cash_reconciliation_lines(self):
        assert self.statement.find_line("cf-net-change").amounts[FEB] == Decimal("400")
        assert self.statement.find_line("cf-cash-beginning").amounts[JAN] == Decimal("5000")
        ending = self.statement.find_line("cf-cash-ending")
        assert ending.amounts[FEB] == Decimal("6000")
        assert ending.is_grand_total


class TestPivotColumns:
    def test_rekeys_by_column(self):
        m = uuid4()
        tables = {
            "a": {m: {"total": cell(net="1")}},
            "b": {m: {"total": cell(net="2"), "other": cell(net="9")}},
        }
        pivoted = pivot_columns(tables, "total")
        assert pivoted == {m: {"a": cell(net="1"), "b": cell(net="2")}}


class TestParseLineId:
    def setup_method(self):
        self.layout = default_income_statement()

    def test_kinds(self):
        sid = StatementId.INCOME_STATEMENT
        assert parse_line_id("gross_margin", sid, self.layout) == ComputedRef("gross_margin")
        assert parse_line_id("revenue-total", sid, self.layout) == SectionTotalRef("revenue")
        assert parse_line_id(f"revenue-{SALES.id}", sid, self.layout) == AccountRef("revenue", SALES.id)
        assert parse_line_id(f"cf-wc-{AR.id}", StatementId.CASH_FLOW) == CashFlowChangeRef("cf-wc", AR.id)

    @pytest.mark.parametrize(
        "line_id",
        ["", "gross_margin_margin", "nowhere-total", "revenue-not-a-uuid", "revenue"],
    )
    def test_unresolvable(self, line_id):
        with pytest.raises(LineNotResolvableError):
            parse_line_id(line_id, StatementId.INCOME_STATEMENT, self.layout)

    def test_cash_flow_totals_not_drillable(self):
        with pytest.raises(LineNotResolvableError) as exc_info:
            parse_line_id("cf-net-change", StatementId.CASH_FLOW)
        assert exc_info.value.code == "LINE_NOT_RESOLVABLE"

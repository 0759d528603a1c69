"""
Cash flow reconciliation against a balanced ledger.

Every monthly balance set below sums to zero per entity (debits positive,
credits negative) and every opening position balances, so the indirect
method must reproduce the movement in cash exactly:

    net increase in cash == cash at end - cash at beginning

for every bucket, scope and adjustment flag combination.
"""

from decimal import Decimal

import pytest

from consolidation_kernel.models import Classification
from consolidation_modules.statements import StatementRequest

CHART = {
    "1000": ("Cash", Classification.ASSET, "Bank"),
    "1100": ("Receivables", Classification.ASSET, "Accounts Receivable"),
    "1500": ("Equipment", Classification.ASSET, "Fixed Asset"),
    "2000": ("Payables", Classification.LIABILITY, "Accounts Payable"),
    "2500": ("Term Loan", Classification.LIABILITY, "Long Term Liability"),
    "3000": ("Capital", Classification.EQUITY, "Equity"),
    "4000": ("Sales", Classification.REVENUE, "Income"),
    "5000": ("Cost of Sales", Classification.EXPENSE, "Cost of Goods Sold"),
    "6000": ("Rent", Classification.EXPENSE, "Expense"),
}

# (master number, opening, [Jan, Feb, Mar] net changes)
EAST_LEDGER = [
    ("1000", 1000, [500, 0, 750]),
    ("1100", 0, [400, -100, 0]),
    ("1500", 0, [0, 900, 0]),
    ("2000", 0, [-300, -100, 200]),
    ("3000", -1000, [0, 0, -500]),
    ("4000", 0, [-1000, -1200, -800]),
    ("5000", 0, [300, 400, 250]),
    ("6000", 0, [100, 100, 100]),
]
WEST_LEDGER = [
    ("1000", 500, [250, 400, 450]),
    ("1100", 0, [0, 500, -500]),
    ("1500", 0, [0, 600, 0]),
    ("2500", -500, [0, -1000, 200]),
    ("4000", 0, [-400, -500, -300]),
    ("6000", 0, [150, 0, 150]),
]

FLAGS = [
    {},
    {"include_pro_forma": True},
    {"include_allocations": True},
    {"include_pro_forma": True, "include_allocations": True},
]
FLAG_IDS = ["ledger", "pro_forma", "allocations", "all_adjustments"]


@pytest.fixture
def balanced(
    create_organization,
    create_entity,
    create_master_account,
    create_account,
    create_balances,
    create_reporting_entity,
    create_pro_forma,
    create_allocation,
):
    org = create_organization("Balanced Books")
    east = create_entity(org, "East Trading", "EST")
    west = create_entity(org, "West Trading", "WST")
    masters = {
        number: create_master_account(org, number, name, cls, account_type)
        for number, (name, cls, account_type) in CHART.items()
    }
    for entity, ledger in ((east, EAST_LEDGER), (west, WEST_LEDGER)):
        for number, opening, nets in ledger:
            name, cls, account_type = CHART[number]
            account = create_account(entity, name, cls, account_type, master=masters[number])
            create_balances(account, (2025, 1), nets, opening=opening)
    group = create_reporting_entity(org, "Coastal", [east])

    # Accrual with an offset, a one-sided revenue correction and cost transfers
    create_pro_forma(org, east, masters["6000"], (2025, 2), 75, offset=masters["2000"])
    create_pro_forma(org, west, masters["4000"], (2025, 3), -40)
    create_allocation(org, west, east, masters["6000"], 60, period=(2025, 2))
    create_allocation(org, east, west, masters["5000"], 90, start=(2025, 1), end=(2025, 3))

    return {"org": org, "east": east, "west": west, "group": group}


def scopes(balanced):
    return [
        ("organization", balanced["org"].id),
        ("entity", balanced["east"].id),
        ("entity", balanced["west"].id),
        ("reporting_entity", balanced["group"].id),
    ]


def summarize(service, scope, scope_id, granularity="monthly", **flags):
    return service.summary(
        StatementRequest.of(
            scope, scope_id, (2025, 1), (2025, 3),
            granularity=granularity, include_cash_flow=True, **flags,
        ),
    )


class TestCashFlowIdentity:
    @pytest.mark.parametrize("granularity", ["monthly", "quarterly"])
    @pytest.mark.parametrize("flags", FLAGS, ids=FLAG_IDS)
    def test_net_change_equals_cash_movement(self, statements_service, balanced, granularity, flags):
        for scope, scope_id in scopes(balanced):
            cf = summarize(statements_service, scope, scope_id, granularity, **flags).cash_flow
            net_change = cf.find_line("cf-net-change")
            beginning = cf.find_line("cf-cash-beginning")
            ending = cf.find_line("cf-cash-ending")

            for column in cf.columns:
                assert net_change.amount(column.key) == (
                    ending.amount(column.key) - beginning.amount(column.key)
                ), (scope, column.key)

    def test_known_movements(self, statements_service, balanced):
        cf = summarize(statements_service, "organization", balanced["org"].id).cash_flow

        assert [cf.find_line("cf-net-change").amount(k) for k in ("2025-01", "2025-02", "2025-03")] == [
            Decimal("750"), Decimal("400"), Decimal("1200"),
        ]
        assert cf.find_line("cf-cash-beginning").amount("2025-01") == Decimal("1500")
        assert cf.find_line("cf-cash-ending").amount("2025-03") == Decimal("3850")

    def test_adjusted_net_income_stays_on_income_statement(self, statements_service, balanced):
        org_id = balanced["org"].id
        ledger = summarize(statements_service, "organization", org_id)
        adjusted = summarize(
            statements_service, "organization", org_id,
            include_pro_forma=True, include_allocations=True,
        )

        feb_income = adjusted.income_statement.find_line("net_income").amount("2025-02")
        assert feb_income == ledger.income_statement.find_line("net_income").amount("2025-02") - 75
        assert adjusted.cash_flow.find_line("cf-net-income").amounts == (
            ledger.income_statement.find_line("net_income").amounts
        )
        assert adjusted.cash_flow == ledger.cash_flow

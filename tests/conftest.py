"""
Pytest fixtures for the consolidation engine test suite.

Provides:
- A file-based SQLite database per test.  The statements service opens one
  Session per read worker thread, so the database must be shared across
  connections (an in-memory database is not).
- Factory fixtures for organizations, entities, charts, balances, budgets,
  reporting entities and adjustments.  Every factory commits, so rows are
  visible to the service's own sessions.
- ``acme``: the standard three-entity dataset used by the statement tests.

Standard dataset (``acme``), calendar 2025 Jan-Mar, credit-normal stored
negative:

    Alpha (ALP)  Sales 4000 -1000/-1500/-1200   COGS 5000 400/600/500
                 Rent 6000 100/100/100          Checking 1000 open 5000
                 AR 1100 +200/+300/-100         AP 2000 -100/-50/+50
                 Equipment 1500 0/+2000/0       Capital 3000 -5000
                 Suspense (unmapped) 999/month
    Beta (BET)   Revenue 4000 -500/month        Payroll 6100 300/month
                 Loan Interest 8000 10/month    Bank 1000 open 1000 +200/month
                 Bank Loan 2500 -2000
    Gamma (GAM)  Sales 4000 -250/month          Interest 7000 -5/month
                 Cash 1000 300                  Rounding 6000 0/0/0.001

    Reporting entity North = {Alpha, Beta}; Gamma is unassigned.
    Prior year (2024 Jan-Mar): Alpha Sales -800/-900/-1000, Beta -400/month.
    Budget FY2025 (active, Alpha): Sales -1100/-1400/-1300, Rent 120/month,
        Checking 5600/6200/6600.  Beta has an inactive version only.
    Adjustments: pro forma Alpha Rent +50 Feb offset to AP; allocation
        Salaries 1200 spread Jan-Apr from Beta to Alpha; an excluded pro
        forma on Gamma Sales that must never apply.
"""

import json
import logging
from collections.abc import Generator
from dataclasses import dataclass, field
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from consolidation_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from consolidation_kernel.domain.clock import DeterministicClock
from consolidation_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from consolidation_kernel.models import (
    Account,
    AccountMapping,
    AllocationAdjustment,
    BudgetAmount,
    BudgetStatus,
    BudgetVersion,
    Classification,
    Entity,
    GLBalance,
    MasterAccount,
    Organization,
    ProFormaAdjustment,
    ReportingEntity,
    ReportingEntityMember,
)
from consolidation_kernel.models.adjustments import AllocationSchedule
from consolidation_modules.statements import FinancialStatementsService, StatementsConfig


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture consolidation_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, statements_service):
            statements_service.summary(request)
            logs = captured_logs()
            assert any(r["message"] == "summary_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("consolidation_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    """Fresh SQLite database file with every table created."""
    eng = init_engine_from_url(f"sqlite:///{tmp_path / 'consolidation.db'}")
    create_tables()
    yield eng
    reset_engine()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker[Session]:
    return get_session_factory()


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """Session used by the factory fixtures to write test data."""
    sess = session_factory()
    yield sess
    sess.close()


@pytest.fixture
def statements_config() -> StatementsConfig:
    return StatementsConfig.with_defaults()


@pytest.fixture
def statements_service(session_factory, deterministic_clock, statements_config):
    return FinancialStatementsService(
        session_factory, clock=deterministic_clock, config=statements_config,
    )


def _save(session: Session, *rows):
    session.add_all(rows)
    session.commit()
    return rows[0] if len(rows) == 1 else rows


# =============================================================================
# Test data generators
# =============================================================================


@pytest.fixture
def create_organization(session: Session):
    """Factory fixture to create organizations."""

    def _create(name: str = "Acme Holdings") -> Organization:
        return _save(session, Organization(id=uuid4(), name=name))

    return _create


@pytest.fixture
def create_entity(session: Session):
    """Factory fixture to create legal entities."""

    def _create(
        organization: Organization,
        name: str,
        code: str | None = None,
        is_active: bool = True,
    ) -> Entity:
        return _save(
            session,
            Entity(
                id=uuid4(),
                organization_id=organization.id,
                name=name,
                code=code,
                is_active=is_active,
            ),
        )

    return _create


@pytest.fixture
def create_master_account(session: Session):
    """Factory fixture to create master chart accounts."""

    def _create(
        organization: Organization,
        account_number: str,
        name: str,
        classification: Classification,
        account_type: str,
        is_active: bool = True,
    ) -> MasterAccount:
        return _save(
            session,
            MasterAccount(
                id=uuid4(),
                organization_id=organization.id,
                account_number=account_number,
                name=name,
                classification=classification.value,
                account_type=account_type,
                is_active=is_active,
            ),
        )

    return _create


@pytest.fixture
def create_account(session: Session):
    """
    Factory fixture to create an entity-local account.

    When ``master`` is given, the account is also mapped to it.
    """

    def _create(
        entity: Entity,
        name: str,
        classification: Classification,
        account_type: str,
        account_number: str | None = None,
        master: MasterAccount | None = None,
    ) -> Account:
        account = Account(
            id=uuid4(),
            entity_id=entity.id,
            name=name,
            account_number=account_number,
            classification=classification.value,
            account_type=account_type,
        )
        session.add(account)
        if master is not None:
            session.add(
                AccountMapping(
                    id=uuid4(),
                    master_account_id=master.id,
                    entity_id=entity.id,
                    account_id=account.id,
                )
            )
        session.commit()
        return account

    return _create


@pytest.fixture
def create_balances(session: Session):
    """
    Factory fixture to create consecutive monthly GL balances.

    ``net_changes`` are applied month by month from ``start``; beginning and
    ending balances run forward from ``opening``.
    """

    def _create(
        account: Account,
        start: tuple[int, int],
        net_changes: list,
        opening=Decimal("0"),
    ) -> list[GLBalance]:
        year, month = start
        balance = Decimal(str(opening))
        rows = []
        for net in net_changes:
            net = Decimal(str(net))
            rows.append(
                GLBalance(
                    id=uuid4(),
                    account_id=account.id,
                    entity_id=account.entity_id,
                    period_year=year,
                    period_month=month,
                    beginning_balance=balance,
                    ending_balance=balance + net,
                    net_change=net,
                )
            )
            balance += net
            month += 1
            if month > 12:
                year, month = year + 1, 1
        session.add_all(rows)
        session.commit()
        return rows

    return _create


@pytest.fixture
def create_budget_version(session: Session):
    """Factory fixture to create a budget version."""

    def _create(
        entity: Entity,
        fiscal_year: int,
        is_active: bool = True,
        name: str = "Budget",
        status: BudgetStatus = BudgetStatus.APPROVED,
    ) -> BudgetVersion:
        return _save(
            session,
            BudgetVersion(
                id=uuid4(),
                entity_id=entity.id,
                fiscal_year=fiscal_year,
                name=name,
                status=status.value,
                is_active=is_active,
            ),
        )

    return _create


@pytest.fixture
def create_budget_amounts(session: Session):
    """Factory fixture to create monthly budget amounts from ``start``."""

    def _create(
        version: BudgetVersion,
        account: Account,
        start: tuple[int, int],
        amounts: list,
    ) -> list[BudgetAmount]:
        year, month = start
        rows = [
            BudgetAmount(
                id=uuid4(),
                budget_version_id=version.id,
                account_id=account.id,
                period_year=year,
                period_month=month + i,
                amount=Decimal(str(amount)),
            )
            for i, amount in enumerate(amounts)
        ]
        session.add_all(rows)
        session.commit()
        return rows

    return _create


@pytest.fixture
def create_reporting_entity(session: Session):
    """Factory fixture to create a reporting entity with members."""

    def _create(
        organization: Organization,
        name: str,
        members: list[Entity],
        code: str | None = None,
        is_active: bool = True,
    ) -> ReportingEntity:
        group = ReportingEntity(
            id=uuid4(),
            organization_id=organization.id,
            name=name,
            code=code,
            is_active=is_active,
        )
        session.add(group)
        session.add_all(
            ReportingEntityMember(
                id=uuid4(), reporting_entity_id=group.id, entity_id=m.id,
            )
            for m in members
        )
        session.commit()
        return group

    return _create


@pytest.fixture
def create_pro_forma(session: Session):
    """Factory fixture to create a pro forma adjustment."""

    def _create(
        organization: Organization,
        entity: Entity,
        master: MasterAccount,
        period: tuple[int, int],
        amount,
        offset: MasterAccount | None = None,
        description: str = "",
        is_excluded: bool = False,
    ) -> ProFormaAdjustment:
        return _save(
            session,
            ProFormaAdjustment(
                id=uuid4(),
                organization_id=organization.id,
                entity_id=entity.id,
                master_account_id=master.id,
                offset_master_account_id=offset.id if offset is not None else None,
                period_year=period[0],
                period_month=period[1],
                amount=Decimal(str(amount)),
                description=description,
                is_excluded=is_excluded,
            ),
        )

    return _create


@pytest.fixture
def create_allocation(session: Session):
    """
    Factory fixture to create an allocation adjustment.

    Pass ``period`` for single_month schedules, ``start``/``end`` for
    monthly_spread schedules.
    """

    def _create(
        organization: Organization,
        source: Entity,
        destination: Entity,
        master: MasterAccount,
        amount,
        period: tuple[int, int] | None = None,
        start: tuple[int, int] | None = None,
        end: tuple[int, int] | None = None,
        is_repeating: bool = False,
        repeat_end_year: int | None = None,
        destination_master: MasterAccount | None = None,
        description: str = "",
        is_excluded: bool = False,
    ) -> AllocationAdjustment:
        schedule = (
            AllocationSchedule.MONTHLY_SPREAD if start is not None
            else AllocationSchedule.SINGLE_MONTH
        )
        return _save(
            session,
            AllocationAdjustment(
                id=uuid4(),
                organization_id=organization.id,
                source_entity_id=source.id,
                destination_entity_id=destination.id,
                master_account_id=master.id,
                destination_master_account_id=(
                    destination_master.id if destination_master is not None else None
                ),
                amount=Decimal(str(amount)),
                schedule_type=schedule.value,
                period_year=period[0] if period else None,
                period_month=period[1] if period else None,
                is_repeating=is_repeating,
                repeat_end_year=repeat_end_year,
                start_year=start[0] if start else None,
                start_month=start[1] if start else None,
                end_year=end[0] if end else None,
                end_month=end[1] if end else None,
                description=description,
                is_excluded=is_excluded,
            ),
        )

    return _create


# =============================================================================
# Standard dataset
# =============================================================================


@dataclass
class AcmeDataset:
    organization: Organization
    alpha: Entity
    beta: Entity
    gamma: Entity
    north: ReportingEntity
    masters: dict[str, MasterAccount] = field(default_factory=dict)
    accounts: dict[str, Account] = field(default_factory=dict)

    def master_id(self, number: str) -> UUID:
        return self.masters[number].id


@pytest.fixture
def acme(
    create_organization,
    create_entity,
    create_master_account,
    create_account,
    create_balances,
    create_budget_version,
    create_budget_amounts,
    create_reporting_entity,
    create_pro_forma,
    create_allocation,
) -> AcmeDataset:
    org = create_organization("Acme Holdings")
    alpha = create_entity(org, "Alpha Corp", "ALP")
    beta = create_entity(org, "Beta LLC", "BET")
    gamma = create_entity(org, "Gamma Inc", "GAM")

    chart = [
        ("4000", "Product Sales", Classification.REVENUE, "Income"),
        ("5000", "Cost of Sales", Classification.EXPENSE, "Cost of Goods Sold"),
        ("6000", "Rent", Classification.EXPENSE, "Expense"),
        ("6100", "Salaries", Classification.EXPENSE, "Expense"),
        ("6900", "Travel", Classification.EXPENSE, "Expense"),
        ("7000", "Interest Income", Classification.REVENUE, "Other Income"),
        ("8000", "Interest Expense", Classification.EXPENSE, "Other Expense"),
        ("1000", "Operating Cash", Classification.ASSET, "Bank"),
        ("1100", "Accounts Receivable", Classification.ASSET, "Accounts Receivable"),
        ("1500", "Equipment", Classification.ASSET, "Fixed Asset"),
        ("2000", "Accounts Payable", Classification.LIABILITY, "Accounts Payable"),
        ("2500", "Term Loan", Classification.LIABILITY, "Long Term Liability"),
        ("3000", "Owner Equity", Classification.EQUITY, "Equity"),
    ]
    masters = {
        number: create_master_account(org, number, name, cls, account_type)
        for number, name, cls, account_type in chart
    }
    data = AcmeDataset(
        organization=org, alpha=alpha, beta=beta, gamma=gamma, north=None, masters=masters,
    )

    def local(key, entity, name, number, master_number, nets, opening=0, unmapped=False):
        master = masters[master_number]
        account = create_account(
            entity,
            name,
            Classification(master.classification),
            master.account_type,
            account_number=number,
            master=None if unmapped else master,
        )
        create_balances(account, (2025, 1), nets, opening=opening)
        data.accounts[key] = account
        return account

    local("alpha_sales", alpha, "Sales", "40100", "4000", [-1000, -1500, -1200])
    local("alpha_cogs", alpha, "COGS", "50100", "5000", [400, 600, 500])
    local("alpha_rent", alpha, "Office Rent", "60100", "6000", [100, 100, 100])
    local("alpha_cash", alpha, "Checking", "10100", "1000", [500, 700, 400], opening=5000)
    local("alpha_ar", alpha, "Trade Receivables", "11000", "1100", [200, 300, -100])
    local("alpha_ap", alpha, "Vendors", "20000", "2000", [-100, -50, 50])
    local("alpha_equipment", alpha, "Equipment", "15000", "1500", [0, 2000, 0])
    local("alpha_equity", alpha, "Capital", "30000", "3000", [0, 0, 0], opening=-5000)
    local("alpha_suspense", alpha, "Suspense", "99999", "6000", [999, 999, 999], unmapped=True)

    local("beta_revenue", beta, "Revenue", "4-000", "4000", [-500, -500, -500])
    local("beta_payroll", beta, "Payroll", "6-100", "6100", [300, 300, 300])
    local("beta_interest", beta, "Loan Interest", "8-000", "8000", [10, 10, 10])
    local("beta_cash", beta, "Bank", "1-000", "1000", [200, 200, 200], opening=1000)
    local("beta_loan", beta, "Bank Loan", "2-500", "2500", [0, 0, 0], opening=-2000)

    local("gamma_sales", gamma, "Sales", "S1", "4000", [-250, -250, -250])
    local("gamma_interest", gamma, "Interest Earned", "I1", "7000", [-5, -5, -5])
    local("gamma_cash", gamma, "Cash", "C1", "1000", [0, 0, 0], opening=300)
    local("gamma_rounding", gamma, "Rounding", "R1", "6000", [0, 0, Decimal("0.001")])

    create_balances(data.accounts["alpha_sales"], (2024, 1), [-800, -900, -1000])
    create_balances(data.accounts["beta_revenue"], (2024, 1), [-400, -400, -400])

    alpha_budget = create_budget_version(alpha, 2025)
    create_budget_amounts(alpha_budget, data.accounts["alpha_sales"], (2025, 1), [-1100, -1400, -1300])
    create_budget_amounts(alpha_budget, data.accounts["alpha_rent"], (2025, 1), [120, 120, 120])
    create_budget_amounts(alpha_budget, data.accounts["alpha_cash"], (2025, 1), [5600, 6200, 6600])
    beta_draft = create_budget_version(beta, 2025, is_active=False, status=BudgetStatus.DRAFT)
    create_budget_amounts(beta_draft, data.accounts["beta_revenue"], (2025, 1), [-9999, -9999, -9999])

    data.north = create_reporting_entity(org, "North Group", [alpha, beta], code="NORTH")

    create_pro_forma(
        org, alpha, masters["6000"], (2025, 2), 50,
        offset=masters["2000"], description="Accrued rent",
    )
    create_pro_forma(
        org, gamma, masters["4000"], (2025, 1), -100000,
        description="Rejected", is_excluded=True,
    )
    create_allocation(
        org, beta, alpha, masters["6100"], 1200,
        start=(2025, 1), end=(2025, 4), description="Shared payroll",
    )
    return data

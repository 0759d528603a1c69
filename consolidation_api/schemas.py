"""
Request and error schemas.

Query models are validated by FastAPI/pydantic before the service is
called; ``to_request()`` then applies the domain checks (start <= end)
that raise InvalidPeriodRangeError.
"""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from consolidation_kernel.domain.periods import Granularity, PeriodRange, YearMonth
from consolidation_modules.statements import (
    Column,
    ScopeKind,
    StatementId,
    StatementRequest,
)


class PeriodQuery(BaseModel):
    """Inclusive month range."""

    start_year: int = Field(..., ge=1, le=9999)
    start_month: int = Field(..., ge=1, le=12)
    end_year: int = Field(..., ge=1, le=9999)
    end_month: int = Field(..., ge=1, le=12)

    def period(self) -> PeriodRange:
        return PeriodRange(
            YearMonth(self.start_year, self.start_month),
            YearMonth(self.end_year, self.end_month),
        )


class ScopeQuery(PeriodQuery):
    """Scope descriptor plus range, granularity and adjustment flags."""

    scope: ScopeKind
    scope_id: UUID
    granularity: Granularity = Granularity.MONTHLY
    include_pro_forma: bool = False
    include_allocations: bool = False

    def to_request(self, **flags: bool) -> StatementRequest:
        return StatementRequest(
            scope_kind=self.scope,
            scope_id=self.scope_id,
            period=self.period(),
            granularity=self.granularity,
            include_pro_forma=self.include_pro_forma,
            include_allocations=self.include_allocations,
            **flags,
        )


class SummaryQuery(ScopeQuery):
    include_budget: bool = False
    include_prior_year: bool = False
    include_cash_flow: bool = False

    def to_request(self, **flags: bool) -> StatementRequest:
        return super().to_request(
            include_budget=self.include_budget,
            include_prior_year=self.include_prior_year,
            include_cash_flow=self.include_cash_flow,
            **flags,
        )


class DrillDownQuery(ScopeQuery):
    line_id: str = Field(..., min_length=1, max_length=200)
    statement_id: StatementId
    bucket_key: str = Field(..., min_length=1, max_length=20)
    column: Column = Column.ACTUAL


class ReportingEntityBreakdownQuery(PeriodQuery):
    organization_id: UUID
    include_pro_forma: bool = False
    include_allocations: bool = False


class EntityBreakdownQuery(ScopeQuery):
    pass


class ErrorResponse(BaseModel):
    """Error body returned for every handled failure."""

    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "code": "ENTITY_NOT_FOUND",
                "message": "Entity not found: 6f1c...",
                "details": {"entity_id": "6f1c..."},
            }
        }
    )

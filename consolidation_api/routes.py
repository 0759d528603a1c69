"""
Financial statements router.

Four read endpoints over FinancialStatementsService.  Handlers are plain
``def`` functions: the service is synchronous and FastAPI runs them in its
threadpool.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request

from consolidation_api.schemas import (
    DrillDownQuery,
    EntityBreakdownQuery,
    ErrorResponse,
    ReportingEntityBreakdownQuery,
    SummaryQuery,
)
from consolidation_api.serializers import to_json_payload
from consolidation_modules.statements import FinancialStatementsService

_ERRORS: dict[int | str, dict[str, Any]] = {
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

router = APIRouter(
    prefix="/financial-statements",
    tags=["Financial Statements"],
    responses=_ERRORS,
)


def get_service(request: Request) -> FinancialStatementsService:
    return request.app.state.statements_service


ServiceDep = Annotated[FinancialStatementsService, Depends(get_service)]


@router.get("", summary="Consolidated statements by period bucket")
def get_financial_statements(
    query: Annotated[SummaryQuery, Query()],
    service: ServiceDep,
) -> dict[str, Any]:
    return to_json_payload(service.summary(query.to_request()))


@router.get("/drill-down", summary="Source rows behind one statement number")
def get_drill_down(
    query: Annotated[DrillDownQuery, Query()],
    service: ServiceDep,
) -> dict[str, Any]:
    report = service.drill_down(
        query.to_request(),
        line_id=query.line_id,
        statement_id=query.statement_id,
        bucket_key=query.bucket_key,
        column=query.column,
    )
    return to_json_payload(report)


@router.get(
    "/reporting-entity-breakdown",
    summary="One column per reporting entity, other and consolidated",
)
def get_reporting_entity_breakdown(
    query: Annotated[ReportingEntityBreakdownQuery, Query()],
    service: ServiceDep,
) -> dict[str, Any]:
    report = service.reporting_entity_breakdown(
        query.organization_id,
        query.period(),
        include_pro_forma=query.include_pro_forma,
        include_allocations=query.include_allocations,
    )
    return to_json_payload(report)


@router.get("/entity-breakdown", summary="One column per entity plus consolidated")
def get_entity_breakdown(
    query: Annotated[EntityBreakdownQuery, Query()],
    service: ServiceDep,
) -> dict[str, Any]:
    return to_json_payload(service.entity_breakdown(query.to_request()))

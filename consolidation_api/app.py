"""
Application factory.

``create_app()`` wires settings, the kernel session factory, the statements
configuration and the service, then registers the router and the error
handlers that map the typed exception hierarchy onto HTTP responses:

    InvalidRequestError      -> 422
    ReferenceNotFoundError   -> 404
    anything else typed      -> 500
"""

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from consolidation_api.routes import router
from consolidation_api.serializers import to_json_payload
from consolidation_api.settings import Settings, get_settings
from consolidation_kernel.db.engine import get_session_factory, init_engine_from_url
from consolidation_kernel.domain.clock import Clock
from consolidation_kernel.exceptions import (
    ConsolidationError,
    InvalidRequestError,
    ReferenceNotFoundError,
)
from consolidation_kernel.logging_config import LogContext, configure_logging, get_logger
from consolidation_modules.statements import FinancialStatementsService, StatementsConfig

logger = get_logger("api.app")


def status_for(exc: ConsolidationError) -> int:
    if isinstance(exc, InvalidRequestError):
        return 422
    if isinstance(exc, ReferenceNotFoundError):
        return 404
    return 500


def error_body(code: str, message: str, details: dict | None = None) -> dict:
    return {"code": code, "message": message, "details": to_json_payload(details or {})}


async def consolidation_error_handler(request: Request, exc: ConsolidationError) -> JSONResponse:
    status = status_for(exc)
    log = logger.error if status >= 500 else logger.info
    log(
        "request_failed",
        extra={"code": exc.code, "status": status, "path": request.url.path},
    )
    return JSONResponse(
        status_code=status,
        content=error_body(exc.code, str(exc), exc.details()),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    logger.info(
        "request_rejected",
        extra={"path": request.url.path, "error_count": len(errors)},
    )
    return JSONResponse(
        status_code=422,
        content=error_body(
            InvalidRequestError.code, "Request parameters are invalid", {"errors": errors},
        ),
    )


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: sessionmaker[Session] | None = None,
    clock: Clock | None = None,
    config: StatementsConfig | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Tests pass their own ``session_factory`` / ``clock`` / ``config``;
    otherwise the engine is initialized from ``settings.database_url`` and
    the statements layout from ``settings.statements_config`` when set.
    """
    settings = settings or get_settings()
    configure_logging(level=logging.getLevelName(settings.log_level.upper()))

    if session_factory is None:
        init_engine_from_url(settings.database_url, echo=settings.echo_sql)
        session_factory = get_session_factory()
    if config is None:
        config = (
            StatementsConfig.from_yaml(settings.statements_config)
            if settings.statements_config
            else StatementsConfig.with_defaults()
        )

    app = FastAPI(title=settings.app_name)
    app.state.statements_service = FinancialStatementsService(
        session_factory, clock=clock, config=config,
    )

    @app.middleware("http")
    async def bind_request_id(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        with LogContext.bind(request_id=request_id):
            response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response

    app.add_exception_handler(ConsolidationError, consolidation_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(router)

    logger.info("api_app_created", extra={"app_name": settings.app_name})
    return app

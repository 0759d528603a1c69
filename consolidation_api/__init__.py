"""
Consolidation API.

Thin FastAPI read surface over FinancialStatementsService.  Query
parameters are validated by pydantic before any data access; typed
ConsolidationError subclasses are mapped to HTTP status codes with a
``{"code", "message", "details"}`` body.
"""

from consolidation_api.app import create_app

__all__ = ["create_app"]

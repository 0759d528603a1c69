"""
Typed Exception Hierarchy for the Consolidation Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A consolidated statement is either computed from a complete data pull or not
returned at all.  When something stops it, the caller needs to know *which*
request parameter to correct, without parsing a message string:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (the missing id, the bad range)

Example:
    try:
        service.drill_down(request)
    except UnknownPeriodKeyError as e:
        api_response(code=e.code, bucket_key=e.bucket_key)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ConsolidationError:

    ConsolidationError (base)
    |
    +-- InvalidRequestError            rejected before any data access
    |   +-- InvalidPeriodRangeError
    |   +-- InvalidScopeError
    |   +-- InvalidColumnError
    |
    +-- ReferenceNotFoundError         an id that does not exist
    |   +-- EntityNotFoundError
    |   +-- OrganizationNotFoundError
    |   +-- ReportingEntityNotFoundError
    |   +-- UnknownPeriodKeyError
    |   +-- LineNotResolvableError
    |
    +-- EmptyScopeError                valid scope with zero entities
    |
    +-- DataIntegrityError             storage returned an unusable shape
    |   +-- InvalidRecordError
    |
    +-- StatementConfigError           invalid section / formula configuration

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Request         | INVALID_PERIOD_RANGE        | Start after end, month outside 1..12
                | INVALID_SCOPE               | Unknown scope kind or missing scope id
                | INVALID_COLUMN              | Drill-down column not actual/budget
----------------|-----------------------------|-----------------------------------------
Reference       | ENTITY_NOT_FOUND            | Entity id doesn't exist
                | ORGANIZATION_NOT_FOUND      | Organization id doesn't exist
                | REPORTING_ENTITY_NOT_FOUND  | Reporting entity id doesn't exist
                | UNKNOWN_PERIOD_KEY          | Bucket key not in the requested range
                | LINE_NOT_RESOLVABLE         | Line id can't be mapped to sections
----------------|-----------------------------|-----------------------------------------
Scope           | EMPTY_SCOPE                 | Scope resolved to zero entities
----------------|-----------------------------|-----------------------------------------
Integrity       | INVALID_RECORD              | Row failed DTO validation
----------------|-----------------------------|-----------------------------------------
Config          | INVALID_STATEMENT_CONFIG    | Formula references unknown section

===============================================================================
HANDLING PATTERNS
===============================================================================

EmptyScopeError is not a failure from the consumer's point of view.  The
statements service catches it and returns a well-formed empty result (zero
totals, empty sections).  Everything else propagates to the API layer, which
maps the category to an HTTP status:

    InvalidRequestError     -> 422
    ReferenceNotFoundError  -> 404
    DataIntegrityError      -> 500

Nothing here is retried automatically.
"""

from __future__ import annotations

from typing import Any


class ConsolidationError(Exception):
    """
    Base exception for all consolidation kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CONSOLIDATION_ERROR"

    def details(self) -> dict[str, Any]:
        """Structured attributes set by the subclass, for API payloads."""
        return {
            k: v for k, v in vars(self).items()
            if not k.startswith("_") and k != "args"
        }


# =============================================================================
# Input validation
# =============================================================================


class InvalidRequestError(ConsolidationError):
    """Base exception for malformed request parameters."""

    code: str = "INVALID_REQUEST"


class InvalidPeriodRangeError(InvalidRequestError):
    """Requested period range or granularity is malformed."""

    code: str = "INVALID_PERIOD_RANGE"

    def __init__(self, reason: str, **context: Any):
        self.reason = reason
        for key, value in context.items():
            setattr(self, key, value)
        super().__init__(f"Invalid period range: {reason}")


class InvalidScopeError(InvalidRequestError):
    """Scope discriminator is unknown or its id is missing."""

    code: str = "INVALID_SCOPE"

    def __init__(self, scope_kind: str | None, reason: str):
        self.scope_kind = scope_kind
        self.reason = reason
        super().__init__(f"Invalid scope {scope_kind!r}: {reason}")


class InvalidColumnError(InvalidRequestError):
    """Drill-down column is not one of the supported columns."""

    code: str = "INVALID_COLUMN"

    def __init__(self, column: str):
        self.column = column
        super().__init__(f"Invalid column: {column!r}")


# =============================================================================
# Unresolvable references
# =============================================================================


class ReferenceNotFoundError(ConsolidationError):
    """Base exception for ids that do not resolve to a stored record."""

    code: str = "NOT_FOUND"


class EntityNotFoundError(ReferenceNotFoundError):
    """Entity with given ID was not found."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"Entity not found: {entity_id}")


class OrganizationNotFoundError(ReferenceNotFoundError):
    """Organization with given ID was not found."""

    code: str = "ORGANIZATION_NOT_FOUND"

    def __init__(self, organization_id: str):
        self.organization_id = str(organization_id)
        super().__init__(f"Organization not found: {organization_id}")


class ReportingEntityNotFoundError(ReferenceNotFoundError):
    """Reporting entity with given ID was not found."""

    code: str = "REPORTING_ENTITY_NOT_FOUND"

    def __init__(self, reporting_entity_id: str):
        self.reporting_entity_id = str(reporting_entity_id)
        super().__init__(f"Reporting entity not found: {reporting_entity_id}")


class UnknownPeriodKeyError(ReferenceNotFoundError):
    """Drill-down bucket key is not one of the buckets of the range."""

    code: str = "UNKNOWN_PERIOD_KEY"

    def __init__(self, bucket_key: str, available: tuple[str, ...] = ()):
        self.bucket_key = bucket_key
        self.available = list(available)
        super().__init__(f"Period {bucket_key} not found in range")


class LineNotResolvableError(ReferenceNotFoundError):
    """Line id cannot be resolved to sections or master accounts."""

    code: str = "LINE_NOT_RESOLVABLE"

    def __init__(self, line_id: str, statement_id: str, reason: str):
        self.line_id = line_id
        self.statement_id = statement_id
        self.reason = reason
        super().__init__(
            f"Cannot resolve line {line_id!r} on {statement_id}: {reason}"
        )


# =============================================================================
# Empty scope
# =============================================================================


class EmptyScopeError(ConsolidationError):
    """
    Structurally valid scope that resolves to zero entities.

    Carries enough to render an empty-but-labelled response.
    """

    code: str = "EMPTY_SCOPE"

    def __init__(
        self,
        scope_kind: str,
        scope_id: str,
        organization_id: str | None = None,
        display_name: str = "",
    ):
        self.scope_kind = scope_kind
        self.scope_id = str(scope_id)
        self.organization_id = (
            str(organization_id) if organization_id is not None else None
        )
        self.display_name = display_name
        super().__init__(f"No entities in scope {scope_kind}:{scope_id}")


# =============================================================================
# Data integrity
# =============================================================================


class DataIntegrityError(ConsolidationError):
    """Base exception for storage results with an unusable shape."""

    code: str = "DATA_INTEGRITY"


class InvalidRecordError(DataIntegrityError):
    """A stored row failed validation at the data-access boundary."""

    code: str = "INVALID_RECORD"

    def __init__(self, table: str, record_id: str | None, reason: str):
        self.table = table
        self.record_id = str(record_id) if record_id is not None else None
        self.reason = reason
        super().__init__(f"Invalid {table} record {record_id}: {reason}")


# =============================================================================
# Configuration
# =============================================================================


class StatementConfigError(ConsolidationError):
    """Statement section or computed-line configuration is inconsistent."""

    code: str = "INVALID_STATEMENT_CONFIG"

    def __init__(self, statement_id: str, reason: str):
        self.statement_id = statement_id
        self.reason = reason
        super().__init__(f"Invalid {statement_id} configuration: {reason}")

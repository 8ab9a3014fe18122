# ============================================================================
# MODULE CONTEXT - QUERY ENGINE ERRORS
# ============================================================================
# STATUS: Shared Foundation - Exception taxonomy
# PURPOSE: Typed errors mapped to HTTP status codes for features and responses APIs
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: SurveyAPIError, RequestValidationError, UnboundedQueryError, StoreError,
#          PartialBatchFailure, IntegrityWarning (+ validation subclasses)
# DEPENDENCIES: typing
# PATTERNS: Exception hierarchy carrying status_code / error_type
# ============================================================================

"""
Query Engine Error Taxonomy

Every error the engine raises on purpose derives from SurveyAPIError and knows
its HTTP status and error code. Triggers render them as {"code", "description"}
JSON bodies; to_dict() gives the same shape.

    SurveyAPIError (500)
    ├── RequestValidationError (400)
    │   ├── AmbiguousQueryError
    │   ├── MalformedBoundingBoxError
    │   ├── MalformedPointError
    │   ├── InvalidPagingError
    │   ├── InvalidFormatError
    │   └── MalformedBatchError
    ├── UnboundedQueryError (413)
    ├── StoreError (500)
    └── PartialBatchFailure (500)

IntegrityWarning is not raised. Repositories log it, count it and hand it to
an optional on_integrity_warning hook.
"""

from typing import Any, Dict, List, Optional, Tuple


class SurveyAPIError(Exception):
    """Base class for errors surfaced to HTTP callers."""

    status_code: int = 500
    error_type: str = "InternalServerError"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "code": self.error_type,
            "description": self.message
        }
        body.update(self.details)
        return body


class RequestValidationError(SurveyAPIError):
    """Malformed or ambiguous request parameters (400)."""
    status_code = 400
    error_type = "BadRequest"


class AmbiguousQueryError(RequestValidationError):
    error_type = "AmbiguousQuery"


class MalformedBoundingBoxError(RequestValidationError):
    error_type = "MalformedBoundingBox"


class MalformedPointError(RequestValidationError):
    error_type = "MalformedPoint"


class InvalidPagingError(RequestValidationError):
    error_type = "InvalidPaging"


class InvalidFormatError(RequestValidationError):
    error_type = "InvalidFormat"


class MalformedBatchError(RequestValidationError):
    error_type = "MalformedBatch"


class UnboundedQueryError(SurveyAPIError):
    """
    Feature query without a bounding box or point (413).

    The reference catalog is never scanned in full.
    """
    status_code = 413
    error_type = "UnboundedQuery"


class StoreError(SurveyAPIError):
    """Backing store unreachable, timed out or rejected the statement."""
    status_code = 500
    error_type = "StoreError"


class PartialBatchFailure(SurveyAPIError):
    """
    Some inserts of a response batch failed after others were committed.

    Committed records are not rolled back. `persisted` holds them in the
    caller's order and `failures` holds (input index, message) pairs, so
    counts reported to the caller always match what is in the store.
    """
    status_code = 500
    error_type = "PartialBatchFailure"

    def __init__(
        self,
        persisted: List[Dict[str, Any]],
        failures: List[Tuple[int, str]],
        total: int
    ):
        self.persisted = persisted
        self.failures = failures
        self.total = total
        super().__init__(
            f"{len(failures)} of {total} responses could not be saved; "
            f"{len(persisted)} were saved",
            details={
                "persisted": len(persisted),
                "failed": [{"index": index, "error": error} for index, error in failures],
                "responses": persisted
            }
        )


class IntegrityWarning(UserWarning):
    """
    Stored data breaks an expectation (duplicate response id, feature
    without its standard properties). The request still succeeds.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

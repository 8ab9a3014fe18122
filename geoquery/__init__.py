"""
Feature & Response Query/Export Engine.

Shared by features_api and responses_api: parameter validation, output
encodings, ETag handling, the error taxonomy and the base HTTP trigger.
"""

from .errors import (
    SurveyAPIError,
    RequestValidationError,
    AmbiguousQueryError,
    MalformedBoundingBoxError,
    MalformedPointError,
    InvalidPagingError,
    InvalidFormatError,
    MalformedBatchError,
    UnboundedQueryError,
    StoreError,
    PartialBatchFailure,
    IntegrityWarning
)
from .models import BoundingBox, OutputFormat, Point, QuerySpec, RenderedResult, ResultSet, SortOrder
from .parser import QuerySpecParser
from .fingerprint import CacheDecision, ContentFingerprint
from .serializers import FormatSerializer, flatten_record, unflatten_record

__all__ = [
    "SurveyAPIError",
    "RequestValidationError",
    "AmbiguousQueryError",
    "MalformedBoundingBoxError",
    "MalformedPointError",
    "InvalidPagingError",
    "InvalidFormatError",
    "MalformedBatchError",
    "UnboundedQueryError",
    "StoreError",
    "PartialBatchFailure",
    "IntegrityWarning",
    "BoundingBox",
    "OutputFormat",
    "Point",
    "QuerySpec",
    "RenderedResult",
    "ResultSet",
    "SortOrder",
    "QuerySpecParser",
    "CacheDecision",
    "ContentFingerprint",
    "FormatSerializer",
    "flatten_record",
    "unflatten_record"
]

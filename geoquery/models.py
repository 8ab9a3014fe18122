# ============================================================================
# MODULE CONTEXT - QUERY ENGINE MODELS
# ============================================================================
# STATUS: Shared Foundation - Pydantic models
# PURPOSE: Typed query description and result containers shared by both APIs
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: OutputFormat, SortOrder, BoundingBox, Point, QuerySpec, ResultSet, RenderedResult
# INTERFACES: Pydantic BaseModel
# DEPENDENCIES: pydantic, typing, enum
# VALIDATION: Pydantic v2 validators (bbox ordering, bbox/point exclusivity)
# ============================================================================

"""
Query Engine Models

QuerySpec is the validated form of a raw query string. It is only ever built by
QuerySpecParser, which converts pydantic failures into the engine's own error
types, but the invariants live here so an invalid QuerySpec cannot exist.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


class OutputFormat(str, Enum):
    """Serializations supported by FormatSerializer."""
    JSON = "json"
    GEOJSON = "geojson"
    CSV = "csv"
    KML = "kml"


class SortOrder(str, Enum):
    """Ordering by creation time."""
    ASC = "asc"
    DESC = "desc"


class BoundingBox(BaseModel):
    """Axis-aligned lon/lat rectangle in EPSG:4326."""
    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    @model_validator(mode="after")
    def check_ordering(self) -> "BoundingBox":
        if not self.min_lon < self.max_lon:
            raise ValueError("minimum longitude must be less than maximum longitude")
        if not self.min_lat < self.max_lat:
            raise ValueError("minimum latitude must be less than maximum latitude")
        return self

    def as_list(self) -> List[float]:
        return [self.min_lon, self.min_lat, self.max_lon, self.max_lat]


class Point(BaseModel):
    """Single lon/lat position in EPSG:4326."""
    lon: float
    lat: float


class QuerySpec(BaseModel):
    """
    Validated query description for feature and response lookups.

    count=None means unbounded. For feature queries the parser additionally
    requires exactly one of bbox/point.
    """
    type: Optional[str] = Field(
        default=None,
        description="Exact match on the feature type property (e.g. parcels)"
    )
    source: Optional[str] = Field(
        default=None,
        description="Exact match on the feature source property"
    )
    bbox: Optional[BoundingBox] = None
    point: Optional[Point] = None
    start_index: int = Field(default=0, ge=0)
    count: Optional[int] = Field(default=None, ge=0)
    sort: SortOrder = SortOrder.DESC
    format: Optional[OutputFormat] = None

    @model_validator(mode="after")
    def check_spatial_exclusive(self) -> "QuerySpec":
        if self.bbox is not None and self.point is not None:
            raise ValueError("bbox and point are mutually exclusive")
        return self


class ResultSet(BaseModel):
    """Ordered records plus the format they should be rendered in."""
    kind: Literal["features", "responses"]
    records: List[Dict[str, Any]] = Field(default_factory=list)
    format: OutputFormat = OutputFormat.JSON


class RenderedResult(BaseModel):
    """Serialized body ready to be sent, with its headers."""
    body: bytes
    content_type: str
    content_disposition: Optional[str] = None
    etag: Optional[str] = None

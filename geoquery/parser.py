# ============================================================================
# MODULE CONTEXT - QUERY SPEC PARSER
# ============================================================================
# STATUS: Shared Service - Query parameter validation
# PURPOSE: Turn raw query-string parameters into a validated QuerySpec
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: QuerySpecParser, FORMAT_SUFFIXES, MAX_PAGING_VALUE
# DEPENDENCIES: pydantic, urllib.parse, logging
# VALIDATION: Fails fast with RequestValidationError / UnboundedQueryError
# ============================================================================

"""
QuerySpecParser - fail-fast validation of spatial query parameters.

Recognised parameters:
    bbox        minLon,minLat,maxLon,maxLat
    lon, lat    point (both required)
    type        feature type filter
    source      feature source filter
    startIndex  0-based offset (default 0)
    count       page size (default unbounded)
    sort        asc | desc (default desc)
    format      json | geojson | csv | kml (or a matching path suffix)

Nothing here touches the database; every rejection happens before any
repository call.
"""

import logging
import math
import posixpath
from typing import Iterable, Mapping, Optional
from urllib.parse import urlparse

from pydantic import ValidationError

from .errors import (
    AmbiguousQueryError,
    InvalidFormatError,
    InvalidPagingError,
    MalformedBoundingBoxError,
    MalformedPointError,
    RequestValidationError,
    UnboundedQueryError
)
from .models import BoundingBox, OutputFormat, Point, QuerySpec, SortOrder

logger = logging.getLogger(__name__)

FORMAT_SUFFIXES = {
    ".json": OutputFormat.JSON,
    ".geojson": OutputFormat.GEOJSON,
    ".csv": OutputFormat.CSV,
    ".kml": OutputFormat.KML
}

# LIMIT / OFFSET are bigint in PostgreSQL
MAX_PAGING_VALUE = 2 ** 63 - 1


class QuerySpecParser:
    """
    Parse and validate query parameters for one family of endpoints.

    Args:
        require_spatial_filter: Feature endpoints set this; a query with
            neither bbox nor point is rejected with UnboundedQueryError.
        default_format: Format used when neither a parameter nor a path
            suffix names one.
        allowed_formats: Formats this endpoint can produce.
    """

    def __init__(
        self,
        require_spatial_filter: bool = False,
        default_format: OutputFormat = OutputFormat.JSON,
        allowed_formats: Optional[Iterable[OutputFormat]] = None
    ):
        self.require_spatial_filter = require_spatial_filter
        self.default_format = default_format
        self.allowed_formats = set(allowed_formats or OutputFormat)

    def parse(self, params: Mapping[str, str], path: Optional[str] = None) -> QuerySpec:
        """
        Build a QuerySpec from raw parameters.

        Args:
            params: Query-string parameters (e.g. HttpRequest.params)
            path: Request URL or path, used for format suffix inference

        Raises:
            AmbiguousQueryError: bbox and point both supplied
            UnboundedQueryError: spatial filter required but missing
            MalformedBoundingBoxError, MalformedPointError,
            InvalidPagingError, InvalidFormatError, RequestValidationError
        """
        has_bbox = "bbox" in params
        has_point = "lon" in params or "lat" in params

        if has_bbox and has_point:
            raise AmbiguousQueryError(
                "Specify either a bounding box (bbox) or a point (lon, lat), not both"
            )
        if self.require_spatial_filter and not (has_bbox or has_point):
            raise UnboundedQueryError(
                "A bounding box (bbox) or point (lon, lat) is required for feature queries"
            )

        bbox = self.parse_bbox(params["bbox"]) if has_bbox else None
        point = self._parse_point(params) if has_point else None

        try:
            spec = QuerySpec(
                type=params.get("type") or None,
                source=params.get("source") or None,
                bbox=bbox,
                point=point,
                start_index=self._parse_paging_value(params, "startIndex", default=0),
                count=self._parse_paging_value(params, "count", default=None),
                sort=self._parse_sort(params.get("sort")),
                format=self._parse_format(params.get("format"), path)
            )
        except ValidationError as e:
            raise RequestValidationError(f"Invalid query parameters: {e}") from e

        logger.debug(f"Parsed query spec: {spec.model_dump(exclude_none=True)}")
        return spec

    def parse_bbox(self, raw: str) -> BoundingBox:
        """
        Parse "minLon,minLat,maxLon,maxLat".

        Raises:
            MalformedBoundingBoxError: wrong arity, non-numeric, non-finite or unordered
        """
        parts = [part.strip() for part in (raw or "").split(",")]
        if len(parts) != 4:
            raise MalformedBoundingBoxError(
                f"Bounding box must have exactly four components, got {len(parts)}: '{raw}'"
            )
        try:
            min_lon, min_lat, max_lon, max_lat = (float(part) for part in parts)
        except ValueError:
            raise MalformedBoundingBoxError(f"Bounding box components must be numeric: '{raw}'")
        if not all(math.isfinite(value) for value in (min_lon, min_lat, max_lon, max_lat)):
            raise MalformedBoundingBoxError(f"Bounding box components must be finite: '{raw}'")

        try:
            return BoundingBox(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat)
        except ValidationError as e:
            raise MalformedBoundingBoxError(
                f"Invalid bounding box '{raw}': {e.errors()[0]['msg']}"
            ) from e

    def _parse_point(self, params: Mapping[str, str]) -> Point:
        lon = params.get("lon")
        lat = params.get("lat")
        if lon is None or lat is None:
            raise MalformedPointError("A point query requires both lon and lat")
        try:
            lon_value, lat_value = float(lon), float(lat)
        except ValueError:
            raise MalformedPointError(f"lon and lat must be numeric: lon='{lon}', lat='{lat}'")
        if not (math.isfinite(lon_value) and math.isfinite(lat_value)):
            raise MalformedPointError(f"lon and lat must be finite: lon='{lon}', lat='{lat}'")
        return Point(lon=lon_value, lat=lat_value)

    def _parse_paging_value(
        self,
        params: Mapping[str, str],
        name: str,
        default: Optional[int]
    ) -> Optional[int]:
        raw = params.get(name)
        if raw is None or raw == "":
            return default
        try:
            value = int(raw)
        except ValueError:
            raise InvalidPagingError(f"{name} must be an integer, got '{raw}'")
        if value < 0:
            raise InvalidPagingError(f"{name} must not be negative, got {value}")
        if value > MAX_PAGING_VALUE:
            raise InvalidPagingError(f"{name} must not exceed {MAX_PAGING_VALUE}, got {value}")
        return value

    def _parse_sort(self, raw: Optional[str]) -> SortOrder:
        if not raw:
            return SortOrder.DESC
        try:
            return SortOrder(raw.lower())
        except ValueError:
            raise RequestValidationError(f"sort must be 'asc' or 'desc', got '{raw}'")

    def _parse_format(self, raw: Optional[str], path: Optional[str]) -> OutputFormat:
        explicit = None
        if raw:
            try:
                explicit = OutputFormat(raw.lower())
            except ValueError:
                raise InvalidFormatError(f"Unsupported format '{raw}'")

        suffix_format = self._format_from_path(path)
        if explicit and suffix_format and explicit != suffix_format:
            raise InvalidFormatError(
                f"format={explicit.value} conflicts with the '.{suffix_format.value}' path suffix"
            )

        fmt = explicit or suffix_format or self.default_format
        if fmt not in self.allowed_formats:
            raise InvalidFormatError(f"Format '{fmt.value}' is not available for this endpoint")
        return fmt

    @staticmethod
    def _format_from_path(path: Optional[str]) -> Optional[OutputFormat]:
        if not path:
            return None
        _, extension = posixpath.splitext(urlparse(path).path)
        return FORMAT_SUFFIXES.get(extension.lower())

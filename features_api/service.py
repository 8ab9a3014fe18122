# ============================================================================
# MODULE CONTEXT - FEATURE QUERY SERVICE
# ============================================================================
# STATUS: Service - Reference feature lookups
# PURPOSE: Dispatch a validated QuerySpec to the bbox or point lookup
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: FeatureQueryService
# DEPENDENCIES: geoquery, util_logger
# SOURCE: Repository layer (FeatureRepository)
# PATTERNS: Service Layer, Facade Pattern
# ENTRY_POINTS: service = FeatureQueryService(repository); service.query(spec)
# ============================================================================

"""
Feature Query Service - Business Logic Layer

Chooses the lookup from the QuerySpec (bbox or point), applies startIndex /
count as a plain slice of the id-ordered results and wraps them in a
ResultSet for serialization.
"""

from typing import Optional

from geoquery.errors import UnboundedQueryError
from geoquery.models import OutputFormat, QuerySpec, ResultSet
from util_logger import LoggerFactory, ComponentType

from .repository import FeatureRepository


class FeatureQueryService:
    """
    Business logic service for reference feature queries.

    Args:
        repository: Feature repository (built from config if not provided)
    """

    def __init__(self, repository: Optional[FeatureRepository] = None):
        self.repository = repository or FeatureRepository()
        self.logger = LoggerFactory.create_logger(ComponentType.SERVICE, "FeatureQueryService")

    def query(self, spec: QuerySpec) -> ResultSet:
        """
        Run a feature query.

        Raises:
            UnboundedQueryError: neither bbox nor point (never scans the catalog)
            StoreError: database failure
        """
        if spec.bbox is not None:
            features = self.repository.query_by_bounding_box(
                spec.bbox, type_filter=spec.type, source_filter=spec.source
            )
        elif spec.point is not None:
            features = self.repository.query_by_point(
                spec.point, type_filter=spec.type, source_filter=spec.source
            )
        else:
            raise UnboundedQueryError(
                "A bounding box (bbox) or point (lon, lat) is required for feature queries"
            )

        end = None if spec.count is None else spec.start_index + spec.count
        page = features[spec.start_index:end]

        self.logger.info(
            f"Feature query returned {len(page)} of {len(features)} features",
            extra={'custom_dimensions': {
                'spatial_filter': 'bbox' if spec.bbox is not None else 'point',
                'type_filter': spec.type,
                'source_filter': spec.source,
                'matched': len(features),
                'returned': len(page)
            }}
        )

        return ResultSet(kind="features", records=page, format=spec.format or OutputFormat.GEOJSON)

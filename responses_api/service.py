# ============================================================================
# MODULE CONTEXT - RESPONSE SERVICE
# ============================================================================
# STATUS: Service - Survey response queries, ingestion and exports
# PURPOSE: Business logic between the responses triggers and the repository/pipeline
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: ResponseService
# DEPENDENCIES: geoquery, util_logger
# SOURCE: ResponseRepository, IngestionPipeline
# PATTERNS: Service Layer, Facade Pattern
# ============================================================================

"""
Response Service - Business Logic Layer

Listing operations take a validated QuerySpec and return a ResultSet whose
format the trigger serializes. Exports (csv/kml) return every response of
the survey, oldest first.
"""

from typing import Any, Dict, List, Optional

from geoquery.errors import RequestValidationError
from geoquery.models import BoundingBox, OutputFormat, QuerySpec, ResultSet, SortOrder
from util_logger import LoggerFactory, ComponentType

from .ingestion import IngestionPipeline
from .repository import ResponseRepository


class ResponseService:
    """
    Business logic service for survey responses.

    Args:
        repository: Response repository
        pipeline: Batch ingestion pipeline (built over repository if not provided)
    """

    def __init__(
        self,
        repository: ResponseRepository,
        pipeline: Optional[IngestionPipeline] = None
    ):
        self.repository = repository
        self.pipeline = pipeline or IngestionPipeline(repository)
        self.logger = LoggerFactory.create_logger(ComponentType.SERVICE, "ResponseService")

    # ========================================================================
    # LISTINGS
    # ========================================================================

    def list_responses(
        self,
        survey_id: str,
        spec: QuerySpec,
        parcel_id: Optional[str] = None,
        bbox: Optional[BoundingBox] = None
    ) -> ResultSet:
        """
        Ordered, paginated responses of a survey.

        Args:
            survey_id: Owning survey
            spec: Paging, sort and format (and optionally bbox) from the query string
            parcel_id: Restrict to one parcel
            bbox: Bounding box from the route; takes the place of spec.bbox

        Raises:
            RequestValidationError: a point filter was supplied
        """
        if spec.point is not None:
            raise RequestValidationError("Responses cannot be filtered by point; use a bounding box")

        records = self.repository.list(
            survey_id,
            parcel_id=parcel_id,
            bbox=bbox or spec.bbox,
            start_index=spec.start_index,
            count=spec.count,
            sort=spec.sort
        )

        self.logger.info(
            f"Listed {len(records)} responses for survey '{survey_id}'",
            extra={'custom_dimensions': {
                'survey_id': survey_id,
                'parcel_id': parcel_id,
                'returned': len(records),
                'start_index': spec.start_index,
                'count': spec.count,
                'sort': spec.sort.value
            }}
        )
        return ResultSet(kind="responses", records=records, format=spec.format or OutputFormat.JSON)

    def export(self, survey_id: str, fmt: OutputFormat) -> ResultSet:
        """Every response of a survey, oldest first, for a file export."""
        records = self.repository.list(survey_id, sort=SortOrder.ASC)
        self.logger.info(
            f"Exporting {len(records)} responses of survey '{survey_id}' as {fmt.value}",
            extra={'custom_dimensions': {'survey_id': survey_id, 'format': fmt.value}}
        )
        return ResultSet(kind="responses", records=records, format=fmt)

    # ========================================================================
    # SINGLE RESPONSE
    # ========================================================================

    def get_response(self, survey_id: str, response_id: str) -> Optional[Dict[str, Any]]:
        return self.repository.get_one(survey_id, response_id)

    def delete_response(self, survey_id: str, response_id: str) -> int:
        return self.repository.remove_one(survey_id, response_id)

    # ========================================================================
    # BATCH OPERATIONS
    # ========================================================================

    def add_responses(self, survey_id: str, body: Any) -> List[Dict[str, Any]]:
        """
        Store a batch of responses.

        Raises:
            MalformedBatchError, PartialBatchFailure, StoreError
        """
        return self.pipeline.insert_batch(survey_id, body)

    def delete_responses(self, survey_id: str) -> int:
        self.logger.warning(
            f"Deleting all responses for survey '{survey_id}'",
            extra={'custom_dimensions': {'survey_id': survey_id}}
        )
        return self.repository.remove(survey_id)

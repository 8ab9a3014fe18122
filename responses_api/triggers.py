# ============================================================================
# MODULE CONTEXT - RESPONSES API TRIGGERS
# ============================================================================
# STATUS: HTTP Triggers - Survey responses
# PURPOSE: Azure Functions handlers for response listing, ingestion, deletion and export
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: get_responses_triggers (returns list of trigger configurations)
# INTERFACES: Azure Functions HttpRequest/HttpResponse
# DEPENDENCIES: azure.functions, geoquery
# SOURCE: HTTP requests from the field app and the survey dashboard
# PATTERNS: Trigger Pattern, Factory Pattern (get_responses_triggers)
# ENTRY_POINTS: function_app.py route registration
# ============================================================================

"""
Responses API HTTP Triggers

- GET    /api/surveys/{survey_id}/responses                      list (paging, sort, format)
- POST   /api/surveys/{survey_id}/responses                      add a batch -> 201
- DELETE /api/surveys/{survey_id}/responses                      delete all -> {"count": n}
- GET    /api/surveys/{survey_id}/responses/{response_id}        {"response": ...} or {}
- DELETE /api/surveys/{survey_id}/responses/{response_id}        {"count": n}
- GET    /api/surveys/{survey_id}/parcels/{parcel_id}/responses  list for one parcel
- GET    /api/surveys/{survey_id}/responses/in/{bbox}            list inside a bounding box
- GET    /api/surveys/{survey_id}/csv                            CSV attachment
- GET    /api/surveys/{survey_id}/kml                            KML attachment

Every GET answers with an ETag; a matching If-None-Match yields 304.
Listings default to {"responses": [...]}; format=geojson|csv|kml switches
the encoding.
"""

from typing import Any, Dict, List, Optional

import azure.functions as func

from geoquery.errors import MalformedBatchError
from geoquery.fingerprint import ContentFingerprint
from geoquery.http import BaseSurveyTrigger
from geoquery.models import OutputFormat
from geoquery.parser import QuerySpecParser
from geoquery.serializers import FormatSerializer, json_bytes

from .service import ResponseService


# ============================================================================
# TRIGGER REGISTRY FUNCTION
# ============================================================================

def get_responses_triggers(
    service: ResponseService,
    fingerprint: Optional[ContentFingerprint] = None,
    serializer: Optional[FormatSerializer] = None
) -> List[Dict[str, Any]]:
    """
    Trigger configurations for function_app.py.

    Returns:
        List of dicts with keys: route, methods, handler
    """
    shared = {'fingerprint': fingerprint, 'serializer': serializer}
    return [
        {
            'route': 'surveys/{survey_id}/responses',
            'methods': ['GET', 'POST', 'DELETE'],
            'handler': ResponsesTrigger(service, **shared).handle
        },
        {
            'route': 'surveys/{survey_id}/responses/in/{bbox}',
            'methods': ['GET'],
            'handler': ResponsesInBoundingBoxTrigger(service, **shared).handle
        },
        {
            'route': 'surveys/{survey_id}/responses/{response_id}',
            'methods': ['GET', 'DELETE'],
            'handler': ResponseItemTrigger(service, **shared).handle
        },
        {
            'route': 'surveys/{survey_id}/parcels/{parcel_id}/responses',
            'methods': ['GET'],
            'handler': ParcelResponsesTrigger(service, **shared).handle
        },
        {
            'route': 'surveys/{survey_id}/csv',
            'methods': ['GET'],
            'handler': ExportTrigger(service, OutputFormat.CSV, **shared).handle
        },
        {
            'route': 'surveys/{survey_id}/kml',
            'methods': ['GET'],
            'handler': ExportTrigger(service, OutputFormat.KML, **shared).handle
        }
    ]


# ============================================================================
# BASE TRIGGER CLASS
# ============================================================================

class BaseResponsesTrigger(BaseSurveyTrigger):
    """Holds the service and the listing parser shared by the response routes."""

    def __init__(
        self,
        service: ResponseService,
        fingerprint: Optional[ContentFingerprint] = None,
        serializer: Optional[FormatSerializer] = None
    ):
        super().__init__(fingerprint=fingerprint, serializer=serializer)
        self.service = service
        self.parser = QuerySpecParser(default_format=OutputFormat.JSON)

    def _list_response(
        self,
        req: func.HttpRequest,
        parcel_id: Optional[str] = None,
        bbox_segment: Optional[str] = None
    ) -> func.HttpResponse:
        survey_id = req.route_params.get('survey_id')
        bbox = self.parser.parse_bbox(bbox_segment) if bbox_segment is not None else None
        spec = self.parser.parse(req.params, path=req.url)

        result_set = self.service.list_responses(survey_id, spec, parcel_id=parcel_id, bbox=bbox)
        return self._rendered_response(req, result_set)


# ============================================================================
# ENDPOINT TRIGGERS
# ============================================================================

class ResponsesTrigger(BaseResponsesTrigger):
    """
    Survey response collection.

    Endpoint: GET | POST | DELETE /api/surveys/{survey_id}/responses
    """

    component_name = "ResponsesTrigger"

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        method = req.method.upper()
        if method == 'POST':
            return self._add(req)
        if method == 'DELETE':
            return self._delete(req)
        return self._list_response(req)

    def _add(self, req: func.HttpRequest) -> func.HttpResponse:
        survey_id = req.route_params.get('survey_id')
        try:
            body = req.get_json()
        except ValueError:
            raise MalformedBatchError("Request body must be valid JSON")

        records = self.service.add_responses(survey_id, body)

        self.logger.info(
            f"Added {len(records)} responses to survey '{survey_id}'",
            extra={'custom_dimensions': {
                **self._log_context(req).to_dict(),
                'batch_size': len(records)
            }}
        )
        return self._json_response({"responses": records}, status_code=201)

    def _delete(self, req: func.HttpRequest) -> func.HttpResponse:
        survey_id = req.route_params.get('survey_id')
        removed = self.service.delete_responses(survey_id)
        return self._json_response({"count": removed})


class ResponseItemTrigger(BaseResponsesTrigger):
    """
    Single response.

    Endpoint: GET | DELETE /api/surveys/{survey_id}/responses/{response_id}

    A missing response is not an error: GET returns {} and DELETE returns
    {"count": 0}.
    """

    component_name = "ResponseItemTrigger"

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        survey_id = req.route_params.get('survey_id')
        response_id = req.route_params.get('response_id')

        if req.method.upper() == 'DELETE':
            removed = self.service.delete_response(survey_id, response_id)
            return self._json_response({"count": removed})

        record = self.service.get_response(survey_id, response_id)
        body = {"response": record} if record is not None else {}
        return self._cached_response(req, json_bytes(body), "application/json")


class ParcelResponsesTrigger(BaseResponsesTrigger):
    """
    Responses about one parcel.

    Endpoint: GET /api/surveys/{survey_id}/parcels/{parcel_id}/responses
    """

    component_name = "ParcelResponsesTrigger"

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        return self._list_response(req, parcel_id=req.route_params.get('parcel_id'))


class ResponsesInBoundingBoxTrigger(BaseResponsesTrigger):
    """
    Responses whose centroid lies strictly inside a bounding box.

    Endpoint: GET /api/surveys/{survey_id}/responses/in/{minLon},{minLat},{maxLon},{maxLat}
    """

    component_name = "ResponsesInBoundingBoxTrigger"

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        return self._list_response(req, bbox_segment=req.route_params.get('bbox', ''))


class ExportTrigger(BaseResponsesTrigger):
    """
    File export of every response of a survey.

    Endpoints: GET /api/surveys/{survey_id}/csv, GET /api/surveys/{survey_id}/kml
    """

    component_name = "ExportTrigger"

    def __init__(
        self,
        service: ResponseService,
        export_format: OutputFormat,
        fingerprint: Optional[ContentFingerprint] = None,
        serializer: Optional[FormatSerializer] = None
    ):
        super().__init__(service, fingerprint=fingerprint, serializer=serializer)
        self.export_format = export_format

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        survey_id = req.route_params.get('survey_id')
        result_set = self.service.export(survey_id, self.export_format)
        return self._rendered_response(req, result_set)

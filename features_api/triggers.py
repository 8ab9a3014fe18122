# ============================================================================
# MODULE CONTEXT - FEATURES API TRIGGERS
# ============================================================================
# STATUS: HTTP Triggers - Reference feature lookups
# PURPOSE: Azure Functions handlers for /api/features and /api/features.geojson
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: get_features_triggers, FeaturesTrigger
# INTERFACES: Azure Functions HttpRequest/HttpResponse
# DEPENDENCIES: azure.functions, geoquery
# SOURCE: HTTP requests from survey clients (Leaflet map, field app)
# PATTERNS: Trigger Pattern, Factory Pattern (get_features_triggers)
# ENTRY_POINTS: function_app.py route registration
# ============================================================================

"""
Features API HTTP Triggers

    GET /api/features?bbox=minLon,minLat,maxLon,maxLat[&type=..][&source=..]
    GET /api/features?lon=..&lat=..[&type=..][&source=..]
    GET /api/features.geojson?...

Exactly one of bbox or lon/lat must be given: both is 400, neither is 413.
Output defaults to a GeoJSON FeatureCollection; format=json returns
{"features": [...]}, and csv/kml are available too. Every 200 carries an
ETag, and a matching If-None-Match yields 304.

Integration:
    In function_app.py:

    from features_api import get_features_triggers

    for trigger in get_features_triggers(service):
        ...
"""

from typing import Any, Dict, List, Optional

import azure.functions as func

from geoquery.fingerprint import ContentFingerprint
from geoquery.http import BaseSurveyTrigger
from geoquery.models import OutputFormat
from geoquery.parser import QuerySpecParser
from geoquery.serializers import FormatSerializer

from .service import FeatureQueryService


def get_features_triggers(
    service: FeatureQueryService,
    fingerprint: Optional[ContentFingerprint] = None,
    serializer: Optional[FormatSerializer] = None
) -> List[Dict[str, Any]]:
    """
    Trigger configurations for function_app.py.

    Returns:
        List of dicts with keys: route, methods, handler
    """
    trigger = FeaturesTrigger(service, fingerprint=fingerprint, serializer=serializer)
    return [
        {
            'route': 'features',
            'methods': ['GET'],
            'handler': trigger.handle
        },
        {
            'route': 'features.geojson',
            'methods': ['GET'],
            'handler': trigger.handle
        }
    ]


class FeaturesTrigger(BaseSurveyTrigger):
    """
    Reference feature query trigger.

    Endpoints: GET /api/features, GET /api/features.geojson
    """

    component_name = "FeaturesTrigger"

    def __init__(
        self,
        service: FeatureQueryService,
        fingerprint: Optional[ContentFingerprint] = None,
        serializer: Optional[FormatSerializer] = None
    ):
        super().__init__(fingerprint=fingerprint, serializer=serializer)
        self.service = service
        self.parser = QuerySpecParser(
            require_spatial_filter=True,
            default_format=OutputFormat.GEOJSON
        )

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        spec = self.parser.parse(req.params, path=req.url)
        result_set = self.service.query(spec)
        return self._rendered_response(req, result_set)

# ============================================================================
# MODULE CONTEXT - AZURE FUNCTIONS ENTRY POINT
# ============================================================================
# STATUS: Core Infrastructure - Function App Entry Point
# PURPOSE: Main entry point for Azure Functions runtime with Features and Responses APIs
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: app (FunctionApp instance)
# DEPENDENCIES: azure-functions, features_api, responses_api, health
# ============================================================================

"""
Azure Functions Entry Point for the Field Survey API

Registers every HTTP trigger. Repositories, services and triggers are built
once per worker process and shared by all invocations; each repository
operation still opens its own database connection.

Architecture:
    - Features API: 2 endpoints (reference feature lookups, PostGIS)
        - /api/features, /api/features.geojson
    - Responses API: 6 routes (list, add, delete, single response,
      parcel and bounding-box listings, CSV/KML export)
    - Health checks: 2 endpoints
        - /api/health - Public (minimal response for external callers)
        - /api/health/detailed - Internal (full metrics for APIM health checks)

Deployment:
    - Local: func start
    - Azure: func azure functionapp publish <app-name> --python --build remote
"""

import azure.functions as func
import logging

from features_api import FeatureRepository, FeatureQueryService, get_features_triggers
from geoquery.fingerprint import ContentFingerprint
from geoquery.serializers import FormatSerializer, json_bytes
from health import get_public_health, get_detailed_health, HealthStatus
from responses_api import (
    IngestionPipeline,
    ResponseRepository,
    ResponseService,
    get_responses_config,
    get_responses_triggers
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Azure Function App
app = func.FunctionApp()


# ============================================================================
# Composition - built once per worker
# ============================================================================

_fingerprint = ContentFingerprint()
_serializer = FormatSerializer()

feature_repository = FeatureRepository()
response_repository = ResponseRepository()

feature_service = FeatureQueryService(feature_repository)
response_service = ResponseService(
    response_repository,
    IngestionPipeline(response_repository, max_workers=get_responses_config().insert_workers)
)


# ============================================================================
# Features API - 2 Endpoints
# ============================================================================

logger.info("Registering Features API endpoints...")

features_handlers = {
    trigger['route']: trigger['handler']
    for trigger in get_features_triggers(feature_service, _fingerprint, _serializer)
}


@app.route(route="features", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def features_query(req: func.HttpRequest) -> func.HttpResponse:
    return features_handlers['features'](req)


@app.route(route="features.geojson", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def features_query_geojson(req: func.HttpRequest) -> func.HttpResponse:
    return features_handlers['features.geojson'](req)


logger.info("Features API registered successfully (2 endpoints)")


# ============================================================================
# Responses API - 6 Routes
# ============================================================================

logger.info("Registering Responses API endpoints...")

responses_handlers = {
    trigger['route']: trigger['handler']
    for trigger in get_responses_triggers(response_service, _fingerprint, _serializer)
}


@app.route(route="surveys/{survey_id}/responses", methods=["GET", "POST", "DELETE"],
           auth_level=func.AuthLevel.ANONYMOUS)
def survey_responses(req: func.HttpRequest) -> func.HttpResponse:
    return responses_handlers['surveys/{survey_id}/responses'](req)


@app.route(route="surveys/{survey_id}/responses/in/{bbox}", methods=["GET"],
           auth_level=func.AuthLevel.ANONYMOUS)
def survey_responses_in_bbox(req: func.HttpRequest) -> func.HttpResponse:
    return responses_handlers['surveys/{survey_id}/responses/in/{bbox}'](req)


@app.route(route="surveys/{survey_id}/responses/{response_id}", methods=["GET", "DELETE"],
           auth_level=func.AuthLevel.ANONYMOUS)
def survey_response(req: func.HttpRequest) -> func.HttpResponse:
    return responses_handlers['surveys/{survey_id}/responses/{response_id}'](req)


@app.route(route="surveys/{survey_id}/parcels/{parcel_id}/responses", methods=["GET"],
           auth_level=func.AuthLevel.ANONYMOUS)
def parcel_responses(req: func.HttpRequest) -> func.HttpResponse:
    return responses_handlers['surveys/{survey_id}/parcels/{parcel_id}/responses'](req)


@app.route(route="surveys/{survey_id}/csv", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def survey_export_csv(req: func.HttpRequest) -> func.HttpResponse:
    return responses_handlers['surveys/{survey_id}/csv'](req)


@app.route(route="surveys/{survey_id}/kml", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def survey_export_kml(req: func.HttpRequest) -> func.HttpResponse:
    return responses_handlers['surveys/{survey_id}/kml'](req)


logger.info("Responses API registered successfully (6 routes)")


# ============================================================================
# Health Check Endpoints - 2 Endpoints (Public + Detailed)
# ============================================================================

@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """
    Public health check endpoint.

    Always returns 200 - status in body indicates health.

    Returns:
        JSON: {"status": "healthy|unhealthy", "timestamp": "..."}
    """
    result = get_public_health(response_repository)

    return func.HttpResponse(
        json_bytes(result),
        mimetype="application/json",
        status_code=200,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"}
    )


@app.route(route="health/detailed", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_detailed(req: func.HttpRequest) -> func.HttpResponse:
    """
    Detailed health check endpoint - for APIM health checks and operations.

    Returns 503 if unhealthy, 200 otherwise.

    SECURITY: Block this endpoint from external access via APIM policy.
    """
    result = get_detailed_health(feature_repository, response_repository)
    status_code = 503 if result["status"] == HealthStatus.UNHEALTHY.value else 200

    return func.HttpResponse(
        json_bytes(result),
        mimetype="application/json",
        status_code=status_code,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"}
    )

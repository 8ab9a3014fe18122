# ============================================================================
# MODULE CONTEXT - BASE SURVEY TRIGGER
# ============================================================================
# STATUS: Shared HTTP layer - base class for features and responses triggers
# PURPOSE: JSON/error responses, error mapping and ETag-validated rendering
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: BaseSurveyTrigger
# INTERFACES: Azure Functions HttpRequest/HttpResponse
# DEPENDENCIES: azure.functions, util_logger
# PATTERNS: Template method (handle -> _process), error translation
# ============================================================================

"""
BaseSurveyTrigger - common plumbing for the API's HTTP triggers.

Subclasses implement `_process(req)`. `handle(req)` wraps it so that:

- SurveyAPIError subclasses become {"code", "description", ...} bodies
  with the error's own status code (400, 413, 500)
- anything else is logged with its traceback and answered with a 500
  InternalServerError body

GET handlers return `_rendered_response` / `_cached_response`, which add an
ETag and answer 304 when If-None-Match already matches.
"""

from typing import Any, Optional

import azure.functions as func

from util_logger import LoggerFactory, ComponentType, LogContext

from .errors import SurveyAPIError
from .fingerprint import CacheDecision, ContentFingerprint
from .models import ResultSet
from .serializers import FormatSerializer, json_bytes


class BaseSurveyTrigger:
    """
    Base class for survey API triggers.

    Args:
        fingerprint: ETag calculator (shared across triggers)
        serializer: Output encoder (shared across triggers)
    """

    component_name = "SurveyTrigger"

    def __init__(
        self,
        fingerprint: Optional[ContentFingerprint] = None,
        serializer: Optional[FormatSerializer] = None
    ):
        self.fingerprint = fingerprint or ContentFingerprint()
        self.serializer = serializer or FormatSerializer()
        self.logger = LoggerFactory.create_logger(ComponentType.TRIGGER, self.component_name)

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        """Azure Functions entry point."""
        try:
            return self._process(req)

        except SurveyAPIError as e:
            log = self.logger.error if e.status_code >= 500 else self.logger.warning
            log(
                f"{e.error_type}: {e.message}",
                extra={'custom_dimensions': {
                    'route': req.url,
                    'status_code': e.status_code,
                    **self._log_context(req).to_dict()
                }}
            )
            return self._json_response(e.to_dict(), status_code=e.status_code)

        except Exception as e:
            self.logger.error(
                f"Unhandled error serving {req.method} {req.url}: {e}",
                exc_info=True,
                extra={'custom_dimensions': self._log_context(req).to_dict()}
            )
            error = SurveyAPIError(f"Internal server error: {str(e)}")
            return self._json_response(error.to_dict(), status_code=error.status_code)

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Response builders
    # ------------------------------------------------------------------

    def _json_response(
        self,
        data: Any,
        status_code: int = 200,
        content_type: str = "application/json"
    ) -> func.HttpResponse:
        """Compact JSON response (no ETag)."""
        if hasattr(data, 'model_dump'):
            data = data.model_dump(mode='json', exclude_none=True)

        return func.HttpResponse(
            body=json_bytes(data),
            status_code=status_code,
            mimetype=content_type,
            charset="utf-8"
        )

    def _cached_response(
        self,
        req: func.HttpRequest,
        body: bytes,
        content_type: str,
        content_disposition: Optional[str] = None
    ) -> func.HttpResponse:
        """
        200 with an ETag, or 304 with the same ETag and no body when the
        client's If-None-Match already covers it.
        """
        etag = self.fingerprint.fingerprint(body)
        headers = {"ETag": etag}

        decision = self.fingerprint.evaluate(etag, req.headers.get("if-none-match"))
        if decision == CacheDecision.NOT_MODIFIED:
            return func.HttpResponse(status_code=304, headers=headers)

        if content_disposition:
            headers["Content-Disposition"] = content_disposition
        return func.HttpResponse(
            body=body,
            status_code=200,
            headers=headers,
            mimetype=content_type,
            charset="utf-8"
        )

    def _rendered_response(self, req: func.HttpRequest, result_set: ResultSet) -> func.HttpResponse:
        rendered = self.serializer.render(result_set)
        return self._cached_response(
            req,
            rendered.body,
            rendered.content_type,
            rendered.content_disposition
        )

    @staticmethod
    def _log_context(req: func.HttpRequest) -> LogContext:
        """Correlation fields for this request's log records."""
        return LogContext(
            request_id=req.headers.get("x-request-id") or req.headers.get("x-ms-request-id"),
            survey_id=req.route_params.get("survey_id"),
            response_id=req.route_params.get("response_id")
        )

# ============================================================================
# MODULE CONTEXT - LOGGING
# ============================================================================
# STATUS: Shared Foundation - used by every layer
# PURPOSE: JSON structured logging for Azure Functions with Application Insights
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: ComponentType, LogLevel, LogContext, ComponentConfig, JSONFormatter,
#          LoggerFactory, log_exceptions
# INTERFACES: Enums, dataclasses, factory, JSON formatter, exception decorator
# DEPENDENCIES: enum, dataclasses, typing, datetime, logging, json, traceback (stdlib only)
# PATTERNS: JSON-only output, customDimensions for App Insights, decorator pattern
# ENTRY_POINTS: LoggerFactory.create_logger(), @log_exceptions
# ============================================================================

"""
Structured Logger

Component loggers for the survey API. Every record is emitted as one JSON
line; anything passed as extra={'custom_dimensions': {...}} ends up under
customDimensions, where Application Insights indexes it.

Component types follow the layering used throughout the app:

    TRIGGER     HTTP handlers (features_api, responses_api, health)
    SERVICE     query/export services and health checks
    PIPELINE    batch ingestion fan-out
    REPOSITORY  PostGIS data access

Usage:
    logger = LoggerFactory.create_logger(ComponentType.SERVICE, "ResponseService")
    logger.info("Listing responses", extra={'custom_dimensions': {'survey_id': sid}})

    # Per-request correlation
    context = LogContext(request_id=..., survey_id=...)
    logger.warning("Rejected", extra={'custom_dimensions': context.to_dict()})

Date: 18 OCT 2026
"""

from enum import Enum
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from dataclasses import dataclass
import logging
import os
import sys
import json
import traceback
from functools import wraps


# ============================================================================
# COMPONENT TYPES
# ============================================================================

class ComponentType(Enum):
    """Architectural layer a logger belongs to."""
    TRIGGER = "trigger"        # HTTP entry points
    SERVICE = "service"        # Query, export and health logic
    PIPELINE = "pipeline"      # Batch ingestion
    REPOSITORY = "repository"  # Data access


# ============================================================================
# LOG LEVELS
# ============================================================================

class LogLevel(Enum):
    """Standard Python log levels as enum for type safety."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_python_level(self) -> int:
        return getattr(logging, self.value)


# ============================================================================
# LOG CONTEXT - Request correlation
# ============================================================================

@dataclass
class LogContext:
    """
    Correlation fields the HTTP triggers attach to their records.

    request_id comes from the x-request-id (or x-ms-request-id) header,
    survey_id and response_id from the route.
    """
    request_id: Optional[str] = None
    survey_id: Optional[str] = None
    response_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Non-empty fields only."""
        return {
            k: v for k, v in {
                'request_id': self.request_id,
                'survey_id': self.survey_id,
                'response_id': self.response_id
            }.items() if v is not None
        }


# ============================================================================
# COMPONENT CONFIGURATION
# ============================================================================

@dataclass
class ComponentConfig:
    """Per-component logging settings."""
    component_type: ComponentType
    log_level: LogLevel = LogLevel.INFO


# ============================================================================
# JSON FORMATTER
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    JSON formatter for Application Insights.

    customDimensions carries the component and context fields; exceptions
    are split into type, message and traceback.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name,
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if hasattr(record, 'custom_dimensions'):
            log_obj['customDimensions'] = record.custom_dimensions

        if record.exc_info:
            log_obj['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': self.formatException(record.exc_info)
            }

        return json.dumps(log_obj, default=str)


# ============================================================================
# LOGGER FACTORY
# ============================================================================

class LoggerFactory:
    """
    Factory for component-specific JSON loggers.

    DEBUG_LOGGING=true lowers every component to DEBUG; repositories always
    log at DEBUG so SQL can be traced.
    """

    default_level = LogLevel.DEBUG if os.getenv('DEBUG_LOGGING', '').lower() == 'true' else LogLevel.INFO

    DEFAULT_CONFIGS = {
        ComponentType.TRIGGER: ComponentConfig(ComponentType.TRIGGER, default_level),
        ComponentType.SERVICE: ComponentConfig(ComponentType.SERVICE, default_level),
        ComponentType.PIPELINE: ComponentConfig(ComponentType.PIPELINE, default_level),
        ComponentType.REPOSITORY: ComponentConfig(ComponentType.REPOSITORY, LogLevel.DEBUG)
    }

    @classmethod
    def create_logger(
        cls,
        component_type: ComponentType,
        name: str,
        config: Optional[ComponentConfig] = None
    ) -> logging.Logger:
        """
        Create a logger for a specific component.

        Args:
            component_type: Layer of the component
            name: Component name (e.g., "ResponseService")
            config: Optional custom configuration

        Returns:
            Configured Python logger named "<layer>.<name>"
        """
        if config is None:
            config = cls.DEFAULT_CONFIGS.get(component_type, ComponentConfig(component_type))

        log_level = config.log_level.to_python_level()

        logger = logging.getLogger(f"{component_type.value}.{name}")
        logger.setLevel(log_level)

        # Remove existing handlers to avoid duplicates
        logger.handlers.clear()

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)

        # Azure's root logger forwards to Application Insights
        logger.propagate = True

        # Loggers are process-wide; wrap the unpatched _log only once
        original_log = getattr(logger, '_unwrapped_log', logger._log)
        logger._unwrapped_log = original_log

        def log_with_dimensions(level, msg, args, exc_info=None, extra=None, stack_info=False, stacklevel=1):
            """Inject component fields as custom dimensions."""
            if extra is None:
                extra = {}

            custom_dims = {
                'component_type': component_type.value,
                'component_name': name
            }

            if 'custom_dimensions' in extra:
                custom_dims.update(extra['custom_dimensions'])
            extra['custom_dimensions'] = custom_dims

            original_log(level, msg, args, exc_info=exc_info, extra=extra,
                         stack_info=stack_info, stacklevel=stacklevel)

        logger._log = log_with_dimensions

        return logger


# ============================================================================
# EXCEPTION DECORATOR
# ============================================================================

def log_exceptions(component_type: Optional[ComponentType] = None,
                   component_name: Optional[str] = None,
                   logger: Optional[logging.Logger] = None):
    """
    Log any exception escaping the wrapped function, then re-raise it.

    Usage:
        @log_exceptions(logger=my_logger)
        @log_exceptions(ComponentType.PIPELINE, "IngestionPipeline")
        @log_exceptions()
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if logger:
                log = logger
            elif component_type and component_name:
                log = LoggerFactory.create_logger(component_type, component_name)
            else:
                log = LoggerFactory.create_logger(ComponentType.SERVICE, func.__module__ or "unknown")

            try:
                return func(*args, **kwargs)
            except Exception as e:
                log.error(
                    f"Exception in {func.__name__}",
                    exc_info=True,
                    extra={
                        'custom_dimensions': {
                            'function_name': func.__name__,
                            'function_module': func.__module__,
                            'exception_type': type(e).__name__,
                            'exception_message': str(e),
                            'function_args': str(args)[:500],
                            'function_kwargs': str(kwargs)[:500],
                            'traceback': traceback.format_exc()
                        }
                    }
                )
                raise
        return wrapper
    return decorator

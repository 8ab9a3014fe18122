# ============================================================================
# MODULE CONTEXT - RESPONSES API MODULE
# ============================================================================
# STATUS: API Module - Survey responses
# PURPOSE: Storage, retrieval, batch ingestion and export of survey responses
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: ResponsesConfig, get_responses_config, ResponseRepository,
#          IngestionPipeline, ResponseService, get_responses_triggers
# DEPENDENCIES: psycopg, pydantic, azure-functions, geoquery
# PATTERNS: Service Layer, Repository Pattern
# ============================================================================

"""
Responses API

Architecture:
    responses_api/
    ├── config.py      # Environment-based configuration
    ├── repository.py  # PostgreSQL access (psycopg)
    ├── ingestion.py   # Concurrent batch insert
    ├── service.py     # Listing, export and batch logic
    └── triggers.py    # Azure Functions HTTP handlers
"""

from .config import ResponsesConfig, get_responses_config
from .repository import ResponseRepository
from .ingestion import IngestionPipeline
from .service import ResponseService
from .triggers import get_responses_triggers

__version__ = "1.0.0"
__all__ = [
    "ResponsesConfig",
    "get_responses_config",
    "ResponseRepository",
    "IngestionPipeline",
    "ResponseService",
    "get_responses_triggers"
]

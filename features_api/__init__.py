# ============================================================================
# MODULE CONTEXT - FEATURES API MODULE
# ============================================================================
# STATUS: API Module - Reference feature lookups
# PURPOSE: Spatial queries over the PostGIS reference feature catalog
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: FeaturesConfig, get_features_config, FeatureRepository,
#          FeatureQueryService, get_features_triggers
# DEPENDENCIES: psycopg, pydantic, azure-functions, geoquery
# PATTERNS: Service Layer, Repository Pattern
# ============================================================================

"""
Features API

Read-only lookups of reference features (parcels, streetlights, ...) by
bounding-box intersection or point containment.

Architecture:
    features_api/
    ├── config.py      # Environment-based configuration
    ├── repository.py  # PostGIS direct access (psycopg)
    ├── service.py     # bbox / point dispatch, paging
    └── triggers.py    # Azure Functions HTTP handlers
"""

from .config import FeaturesConfig, get_features_config
from .repository import FeatureRepository
from .service import FeatureQueryService
from .triggers import get_features_triggers

__version__ = "1.0.0"
__all__ = [
    "FeaturesConfig",
    "get_features_config",
    "FeatureRepository",
    "FeatureQueryService",
    "get_features_triggers"
]

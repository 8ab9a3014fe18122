# ============================================================================
# MODULE CONTEXT - FEATURES API CONFIGURATION
# ============================================================================
# STATUS: Standalone Configuration - Reference features API
# PURPOSE: Table location, precision and timeout for reference feature lookups
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: FeaturesConfig, get_features_config
# INTERFACES: Pydantic BaseModel
# DEPENDENCIES: pydantic, os
# SOURCE: Environment variables (connection settings come from config.py)
# PATTERNS: Settings Pattern, Singleton via cached function
# ENTRY_POINTS: from features_api.config import get_features_config
# ============================================================================

"""
Features API Configuration

Environment Variables (all optional):
    - FEATURES_SCHEMA: Schema containing the reference feature table (default: "geo")
    - FEATURES_TABLE: Reference feature table (default: "features")
    - FEATURES_GEOMETRY_COLUMN: Geometry column name (default: "geom")
    - FEATURES_PRECISION: Coordinate precision for ST_AsGeoJSON (default: 6)
    - FEATURES_QUERY_TIMEOUT: statement_timeout in seconds (default: 30)

Database connection settings (POSTGIS_*) are read by the root config module.
"""

import os
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class FeaturesConfig(BaseModel):
    """Configuration for the reference features API."""

    # env-derived defaults go through the same bounds as explicit values
    model_config = ConfigDict(validate_default=True)

    features_schema: str = Field(
        default_factory=lambda: os.getenv("FEATURES_SCHEMA", "geo"),
        description="PostgreSQL schema containing the reference feature table"
    )
    features_table: str = Field(
        default_factory=lambda: os.getenv("FEATURES_TABLE", "features"),
        description="Reference feature table name"
    )
    geometry_column: str = Field(
        default_factory=lambda: os.getenv("FEATURES_GEOMETRY_COLUMN", "geom"),
        description="Geometry column name (use 'shape' for ArcGIS exports)"
    )
    precision: int = Field(
        default_factory=lambda: int(os.getenv("FEATURES_PRECISION", "6")),
        ge=0,
        le=15,
        description="Coordinate precision (decimal places)"
    )
    query_timeout_seconds: int = Field(
        default_factory=lambda: int(os.getenv("FEATURES_QUERY_TIMEOUT", "30")),
        ge=1,
        le=300,
        description="Maximum query execution time in seconds"
    )


_config_cache: Optional[FeaturesConfig] = None


def get_features_config() -> FeaturesConfig:
    """
    Get singleton features configuration instance.

    Raises:
        ValidationError: If an environment value is out of range
    """
    global _config_cache

    if _config_cache is None:
        _config_cache = FeaturesConfig()

    return _config_cache

# ============================================================================
# MODULE CONTEXT - INFRASTRUCTURE MODULE
# ============================================================================
# STATUS: Core Infrastructure - Database access
# PURPOSE: Shared PostgreSQL base repository for the features and responses APIs
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: PostgreSQLRepository
# DEPENDENCIES: psycopg, config
# ============================================================================

"""
Infrastructure Module

- PostgreSQLRepository: per-operation connections, statement timeouts and
  StoreError translation
- schema.sql: expected PostGIS layout for the feature and response tables
"""

from .postgresql import PostgreSQLRepository

__version__ = "1.0.0"
__all__ = ["PostgreSQLRepository"]

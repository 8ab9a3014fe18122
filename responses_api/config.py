# ============================================================================
# MODULE CONTEXT - RESPONSES API CONFIGURATION
# ============================================================================
# STATUS: Standalone Configuration - Survey responses API
# PURPOSE: Table location, timeout and ingestion fan-out width for survey responses
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: ResponsesConfig, get_responses_config
# INTERFACES: Pydantic BaseModel
# DEPENDENCIES: pydantic, os
# SOURCE: Environment variables (connection settings come from config.py)
# PATTERNS: Settings Pattern, Singleton via cached function
# ============================================================================

"""
Responses API Configuration

Environment Variables (all optional):
    - RESPONSES_SCHEMA: Schema containing the responses table (default: "public")
    - RESPONSES_TABLE: Responses table name (default: "responses")
    - RESPONSES_QUERY_TIMEOUT: statement_timeout in seconds (default: 30)
    - RESPONSES_INSERT_WORKERS: Threads used to insert a batch (default: 8)
"""

import os
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class ResponsesConfig(BaseModel):
    """Configuration for the survey responses API."""

    model_config = ConfigDict(validate_default=True)

    responses_schema: str = Field(
        default_factory=lambda: os.getenv("RESPONSES_SCHEMA", "public"),
        description="PostgreSQL schema containing the responses table"
    )
    responses_table: str = Field(
        default_factory=lambda: os.getenv("RESPONSES_TABLE", "responses"),
        description="Responses table name"
    )
    query_timeout_seconds: int = Field(
        default_factory=lambda: int(os.getenv("RESPONSES_QUERY_TIMEOUT", "30")),
        ge=1,
        le=300,
        description="Maximum statement execution time in seconds"
    )
    insert_workers: int = Field(
        default_factory=lambda: int(os.getenv("RESPONSES_INSERT_WORKERS", "8")),
        ge=1,
        le=64,
        description="Concurrent single-record inserts per batch"
    )


_config_cache: Optional[ResponsesConfig] = None


def get_responses_config() -> ResponsesConfig:
    """Get singleton responses configuration instance."""
    global _config_cache

    if _config_cache is None:
        _config_cache = ResponsesConfig()

    return _config_cache

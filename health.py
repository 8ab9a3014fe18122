# ============================================================================
# MODULE CONTEXT - HEALTH CHECK MODULE
# ============================================================================
# STATUS: Core Infrastructure - Health Monitoring
# PURPOSE: Public and detailed health checks for the field survey API
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: get_public_health, get_detailed_health, HealthStatus, CheckResult
# DEPENDENCIES: infrastructure.postgresql, config, util_logger
# PATTERNS: Two-tier health checks (public/detailed) for APIM
# ============================================================================

"""
Health Check Module

1. Public Health (/api/health):
   - Status and timestamp only
   - Always returns 200 (status in body indicates health)

2. Detailed Health (/api/health/detailed):
   - Database connectivity with latency
   - Reference feature table and responses table presence
   - Data integrity counters (features missing standard properties,
     duplicated response ids)
   - Returns 503 if unhealthy

Block /health/detailed at the gateway; it names hosts and tables.

Usage:
    from health import get_public_health, get_detailed_health

    result = get_public_health(response_repository)
    # {"status": "healthy", "timestamp": "2026-10-18T12:00:00+00:00"}

    result = get_detailed_health(feature_repository, response_repository)
"""

import time
import uuid
from enum import Enum
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Optional, Dict, Any

from infrastructure.postgresql import PostgreSQLRepository
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "HealthService")

APP_NAME = "fieldsurvey-api"


# ============================================================================
# Health Status Enum
# ============================================================================

class HealthStatus(str, Enum):
    """Health status values."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"      # Non-critical components failing
    UNHEALTHY = "unhealthy"    # Critical components failing


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class CheckResult:
    """Result of a single health check."""
    status: str              # "pass" or "fail"
    latency_ms: float
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "status": self.status,
            "latency_ms": round(self.latency_ms, 2),
            "message": self.message
        }
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Health Check Functions
# ============================================================================

def check_database_connectivity(repository: PostgreSQLRepository) -> CheckResult:
    """
    Execute SELECT 1 through the repository's connection settings.

    Critical check - failure means UNHEALTHY.
    """
    start_time = time.perf_counter()

    try:
        with repository._get_cursor() as cur:
            cur.execute("SELECT 1 AS ok")
            cur.fetchone()

        latency_ms = (time.perf_counter() - start_time) * 1000
        return CheckResult(
            status="pass",
            latency_ms=latency_ms,
            message="PostgreSQL connection successful"
        )

    except Exception as e:
        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.error(f"Database connectivity check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=latency_ms,
            message=f"Database connection failed: {type(e).__name__}",
            details={"error": str(e)}
        )


def check_table(repository: PostgreSQLRepository, table_name: str) -> CheckResult:
    """
    Check that a repository's table exists in its schema.

    Critical check - failure means UNHEALTHY.
    """
    start_time = time.perf_counter()
    qualified = f"{repository.schema_name}.{table_name}"

    try:
        exists = repository._table_exists(table_name)
        latency_ms = (time.perf_counter() - start_time) * 1000

        if not exists:
            return CheckResult(
                status="fail",
                latency_ms=latency_ms,
                message=f"Table '{qualified}' does not exist",
                details={"table": qualified, "exists": False}
            )

        return CheckResult(
            status="pass",
            latency_ms=latency_ms,
            message=f"Table '{qualified}' available",
            details={"table": qualified, "exists": True}
        )

    except Exception as e:
        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.error(f"Table check for '{qualified}' failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=latency_ms,
            message=f"Table check failed: {type(e).__name__}",
            details={"table": qualified, "error": str(e)}
        )


def check_data_integrity(*repositories: Any) -> CheckResult:
    """
    Report integrity warnings counted since the instance started.

    Non-critical check - any warning means DEGRADED.
    """
    start_time = time.perf_counter()
    counts = {
        type(repository).__name__: getattr(repository, "integrity_warnings", 0)
        for repository in repositories
    }
    total = sum(counts.values())
    latency_ms = (time.perf_counter() - start_time) * 1000

    return CheckResult(
        status="pass" if total == 0 else "fail",
        latency_ms=latency_ms,
        message="No integrity warnings" if total == 0 else f"{total} integrity warnings recorded",
        details={"integrity_warnings": counts}
    )


# ============================================================================
# Main Entry Points
# ============================================================================

def get_public_health(repository: PostgreSQLRepository) -> Dict[str, Any]:
    """
    Minimal health status for the public endpoint: status and timestamp only.
    """
    start_time = time.perf_counter()

    db_result = check_database_connectivity(repository)
    status = HealthStatus.HEALTHY if db_result.status == "pass" else HealthStatus.UNHEALTHY

    total_duration = (time.perf_counter() - start_time) * 1000

    logger.info("Public health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(total_duration, 2),
            'check_type': 'public'
        }
    })

    return {
        "status": status.value,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


def get_detailed_health(feature_repository, response_repository) -> Dict[str, Any]:
    """
    Full health metrics for gateway health checks and operations.

    Args:
        feature_repository: FeatureRepository (reference feature table)
        response_repository: ResponseRepository (responses table)
    """
    start_time = time.perf_counter()
    request_id = str(uuid.uuid4())[:8]

    checks = {}
    critical_failures = []
    non_critical_failures = []

    db_result = check_database_connectivity(response_repository)
    checks["database"] = db_result.to_dict()
    if db_result.status == "fail":
        critical_failures.append("database")

    features_result = check_table(feature_repository, feature_repository.config.features_table)
    checks["features_table"] = features_result.to_dict()
    if features_result.status == "fail":
        critical_failures.append("features_table")

    responses_result = check_table(response_repository, response_repository.config.responses_table)
    checks["responses_table"] = responses_result.to_dict()
    if responses_result.status == "fail":
        critical_failures.append("responses_table")

    integrity_result = check_data_integrity(feature_repository, response_repository)
    checks["data_integrity"] = integrity_result.to_dict()
    if integrity_result.status == "fail":
        non_critical_failures.append("data_integrity")

    if critical_failures:
        status = HealthStatus.UNHEALTHY
    elif non_critical_failures:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.HEALTHY

    total_duration = (time.perf_counter() - start_time) * 1000

    logger.info("Detailed health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(total_duration, 2),
            'check_type': 'detailed',
            'request_id': request_id,
            'critical_failures': critical_failures,
            'non_critical_failures': non_critical_failures,
            'database_latency_ms': db_result.latency_ms
        }
    })

    return {
        "status": status.value,
        "app": APP_NAME,
        "description": "Field Survey Feature & Response API",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
        "checks": checks,
        "total_duration_ms": round(total_duration, 2)
    }

# ============================================================================
# MODULE CONTEXT - APPLICATION CONFIGURATION
# ============================================================================
# STATUS: Core Infrastructure - Configuration Management
# PURPOSE: PostGIS connection settings with managed identity support
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: AppConfig, get_app_config, get_postgres_connection_string, reset_token_cache,
#          validate_configuration
# DEPENDENCIES: pydantic-settings, azure-identity
# SOURCE: Environment variables, .env, Azure managed identity
# PATTERNS: Singleton pattern for config, lazy credential acquisition
# ============================================================================

"""
Application Configuration Module

Database settings shared by the features and responses APIs. Table names,
timeouts and worker counts live in each API's own config module.

Authentication Modes:
    1. Password-based (local development):
       - Requires: POSTGIS_HOST, POSTGIS_DATABASE, POSTGIS_USER, POSTGIS_PASSWORD
       - Use when: USE_MANAGED_IDENTITY=false or not set

    2. Managed Identity (Azure production):
       - Requires: System-assigned managed identity with database access
       - Use when: USE_MANAGED_IDENTITY=true

Usage:
    from config import get_postgres_connection_string

    conn_string = get_postgres_connection_string()
    conn = psycopg.connect(conn_string)
"""

import logging
import threading
import time
from typing import Optional
from functools import lru_cache
from urllib.parse import quote_plus

from azure.identity import DefaultAzureCredential
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

POSTGRES_AAD_SCOPE = "https://ossrdbms-aad.database.windows.net/.default"
TOKEN_REFRESH_MARGIN_SECONDS = 300

_credential: Optional[DefaultAzureCredential] = None
_access_token = None
_token_lock = threading.Lock()


# ============================================================================
# Application Configuration
# ============================================================================

class AppConfig(BaseSettings):
    """
    Application-wide configuration loaded from environment variables.

    Attributes:
        postgis_host: PostgreSQL server hostname
        postgis_port: PostgreSQL server port
        postgis_database: Database name
        postgis_user: Database username
        postgis_password: Database password (optional with managed identity)
        postgis_sslmode: libpq sslmode (require for Azure PostgreSQL)
        postgis_connect_timeout: Seconds to wait for a connection
        use_managed_identity: Enable Azure managed identity authentication
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # PostgreSQL Connection
    postgis_host: str = Field(..., description="PostgreSQL hostname")
    postgis_port: int = Field(default=5432, description="PostgreSQL port")
    postgis_database: str = Field(..., description="Database name")
    postgis_user: str = Field(..., description="Database username")
    postgis_password: Optional[str] = Field(default=None, description="Database password")
    postgis_sslmode: str = Field(default="require", description="libpq sslmode")
    postgis_connect_timeout: int = Field(default=10, ge=1, description="Connect timeout (seconds)")

    # Authentication Mode
    use_managed_identity: bool = Field(
        default=False,
        description="Use Azure managed identity for authentication"
    )

    @model_validator(mode="after")
    def validate_password(self) -> "AppConfig":
        """Password is required unless managed identity is on."""
        if not self.use_managed_identity and not self.postgis_password:
            raise ValueError(
                "POSTGIS_PASSWORD is required when USE_MANAGED_IDENTITY=false"
            )
        return self


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """
    Get singleton application configuration instance.

    Raises:
        ValidationError: If required environment variables are missing
    """
    return AppConfig()


# ============================================================================
# PostgreSQL Connection String Generation
# ============================================================================

def get_postgres_connection_string() -> str:
    """
    Generate PostgreSQL connection string based on authentication mode.

    Returns:
        str: PostgreSQL connection URI

    Raises:
        ValidationError: If required configuration is missing
        RuntimeError: If managed identity token acquisition fails
    """
    config = get_app_config()

    if config.use_managed_identity:
        password = _acquire_managed_identity_token(config)
    else:
        logger.debug(f"Building password-based connection string for {config.postgis_host}")
        password = config.postgis_password

    return _build_connection_string(config, password)


def _build_connection_string(config: AppConfig, password: str) -> str:
    # URL-encode credentials to handle special characters (e.g., @ symbols)
    return (
        f"postgresql://{quote_plus(config.postgis_user)}:{quote_plus(password)}"
        f"@{config.postgis_host}:{config.postgis_port}"
        f"/{config.postgis_database}"
        f"?sslmode={config.postgis_sslmode}"
        f"&connect_timeout={config.postgis_connect_timeout}"
    )


def _acquire_managed_identity_token(config: AppConfig) -> str:
    """
    Return an Azure AD access token for Azure Database for PostgreSQL.

    Tokens live about an hour. The last one is reused until it is within
    TOKEN_REFRESH_MARGIN_SECONDS of expiry, then a new one is requested
    from the same credential.
    """
    global _credential, _access_token

    with _token_lock:
        if _access_token and _access_token.expires_on - time.time() > TOKEN_REFRESH_MARGIN_SECONDS:
            return _access_token.token

        logger.info(f"Acquiring managed identity token for {config.postgis_host}")

        try:
            if _credential is None:
                _credential = DefaultAzureCredential()
            _access_token = _credential.get_token(POSTGRES_AAD_SCOPE)
        except Exception as e:
            logger.error(f"Failed to acquire managed identity token: {e}")
            raise RuntimeError(
                f"Managed identity authentication failed: {e}. "
                "Ensure system-assigned managed identity is enabled and has database permissions."
            ) from e

        logger.info("Acquired managed identity token")
        return _access_token.token


def reset_token_cache() -> None:
    """Forget the cached credential and token."""
    global _credential, _access_token

    with _token_lock:
        _credential = None
        _access_token = None


# ============================================================================
# Configuration Validation
# ============================================================================

def validate_configuration() -> bool:
    """
    Validate configuration on application startup.

    Raises:
        ValidationError / RuntimeError: If configuration validation fails
    """
    try:
        config = get_app_config()
        logger.info("Configuration validation:")
        logger.info(f"  PostgreSQL Host: {config.postgis_host}")
        logger.info(f"  PostgreSQL Port: {config.postgis_port}")
        logger.info(f"  Database: {config.postgis_database}")
        logger.info(f"  User: {config.postgis_user}")
        logger.info(f"  SSL Mode: {config.postgis_sslmode}")
        logger.info(f"  Managed Identity: {config.use_managed_identity}")

        get_postgres_connection_string()
        logger.info("Connection string generated successfully")

        return True

    except Exception as e:
        logger.error(f"Configuration validation failed: {e}")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    validate_configuration()

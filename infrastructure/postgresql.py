# ============================================================================
# MODULE CONTEXT - POSTGRESQL REPOSITORY
# ============================================================================
# STATUS: Core Infrastructure - PostgreSQL connection management
# PURPOSE: Per-operation PostGIS connections for the features and responses APIs
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: PostgreSQLRepository
# DEPENDENCIES: psycopg, config, geoquery.errors
# SCOPE: Read access to the reference feature table, read/write access to responses
# PATTERNS: Repository pattern, Per-request connections, Managed identity
# ============================================================================

"""
PostgreSQL Repository - Base Class

Connection management shared by FeatureRepository and ResponseRepository:
- Password-based authentication (local development)
- Azure Managed Identity authentication (production)
- Per-operation connection creation (no pooling)
- Per-connection statement_timeout
- psycopg.Error translated to StoreError so triggers answer 500

Usage:
    from infrastructure.postgresql import PostgreSQLRepository

    repo = PostgreSQLRepository(schema_name='geo')
    with repo._get_cursor() as cursor:
        cursor.execute("SELECT count(*) AS n FROM geo.features")
        row = cursor.fetchone()
"""

import logging
from contextlib import contextmanager
from typing import Optional, Tuple

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from config import get_postgres_connection_string
from geoquery.errors import StoreError

logger = logging.getLogger(__name__)


class PostgreSQLRepository:
    """
    PostgreSQL repository base class with connection management.

    Each operation opens a NEW connection and closes it immediately after use.
    Azure Functions instances are short-lived and scale out horizontally, so
    no pool is kept.

    Without an explicit connection string, one is built for every connection,
    never at construction, so the Function App can build its repositories at
    import time and managed identity tokens are refreshed before they expire.

    Example:
    -------
    ```python
    repo = PostgreSQLRepository(schema_name='public')

    # Single statement, committed on success
    with repo._get_cursor() as cursor:
        cursor.execute("DELETE FROM public.responses WHERE survey = %s", (sid,))

    # Caller-controlled transaction
    with repo._get_connection() as conn:
        with conn.cursor() as cursor:
            cursor.execute(...)
        conn.commit()
    ```
    """

    def __init__(self, connection_string: Optional[str] = None,
                 schema_name: str = 'public',
                 statement_timeout_seconds: Optional[int] = None):
        """
        Initialize PostgreSQL repository.

        Parameters:
        ----------
        connection_string : Optional[str]
            Explicit PostgreSQL connection string. If not provided,
            get_postgres_connection_string() is called for each connection.

        schema_name : str
            Database schema holding the repository's table.

        statement_timeout_seconds : Optional[int]
            Applied to every connection with set_config('statement_timeout').
        """
        self.schema_name = schema_name
        self.statement_timeout_seconds = statement_timeout_seconds
        self._conn_string = connection_string

        logger.info(f"PostgreSQLRepository initialized with schema: {self.schema_name}")

    @property
    def conn_string(self) -> str:
        return self._conn_string or get_postgres_connection_string()

    @contextmanager
    def _get_connection(self):
        """
        Context manager for PostgreSQL database connections.

        1. Create connection (dict_row factory, autocommit OFF)
        2. Apply statement timeout
        3. Yield connection to caller
        4. On psycopg error: rollback, raise StoreError
        5. Always: close connection

        Raises:
        ------
        StoreError
            On connection failures, timeouts and rejected statements
        """
        conn = None
        try:
            logger.debug(f"Opening PostgreSQL connection for schema: {self.schema_name}")
            conn = psycopg.connect(self.conn_string, row_factory=dict_row)

            if self.statement_timeout_seconds:
                with conn.cursor() as cursor:
                    cursor.execute(
                        "SELECT set_config('statement_timeout', %s, false)",
                        (f"{int(self.statement_timeout_seconds * 1000)}",)
                    )

            yield conn

        except psycopg.Error as e:
            logger.error(f"PostgreSQL error ({type(e).__name__}): {e}")

            if conn:
                try:
                    conn.rollback()
                except psycopg.Error as rollback_error:
                    logger.debug(f"Rollback failed: {rollback_error}")

            raise StoreError(f"Database operation failed: {e}") from e

        finally:
            if conn:
                conn.close()
                logger.debug("Connection closed")

    @contextmanager
    def _get_cursor(self):
        """Cursor on a new connection, committed on success."""
        with self._get_connection() as conn:
            with conn.cursor() as cursor:
                yield cursor
                conn.commit()

    def _execute_query(self, query: sql.Composed, params: Optional[Tuple] = None) -> int:
        """
        Execute one DML statement on its own connection and commit.

        Parameters:
        ----------
        query : sql.Composed
            Statement built with psycopg.sql composition.
        params : Optional[Tuple]
            Values for %s placeholders.

        Returns:
        -------
        Affected row count

        Raises:
        ------
        TypeError
            If query is not sql.Composed
        StoreError
            For any database failure
        """
        if not isinstance(query, sql.Composed):
            raise TypeError(f"Query must be sql.Composed, got {type(query)}")

        with self._get_connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute(query, params)
                conn.commit()
                return cursor.rowcount if cursor.rowcount >= 0 else 0

    def _table_exists(self, table_name: str) -> bool:
        """
        Check if a table exists in the schema.

        Raises:
        ------
        StoreError
            If the database cannot be reached
        """
        with self._get_cursor() as cursor:
            cursor.execute("""
                SELECT EXISTS (
                    SELECT FROM information_schema.tables
                    WHERE table_schema = %s
                    AND table_name = %s
                ) as exists
            """, (self.schema_name, table_name))
            result = cursor.fetchone()
            return result['exists'] if result else False

# ============================================================================
# MODULE CONTEXT - RESPONSE REPOSITORY
# ============================================================================
# STATUS: Repository - Survey response storage (read/write)
# PURPOSE: Ordered, paginated retrieval plus single insert and deletes of responses
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: ResponseRepository, isoformat_utc
# DEPENDENCIES: psycopg, psycopg.sql, psycopg.types.json, infrastructure.postgresql
# SOURCE: PostgreSQL responses table (configurable schema/table)
# VALIDATION: SQL injection prevention via psycopg.sql composition
# PATTERNS: Repository Pattern, Query Builder, SQL Composition
# ENTRY_POINTS: repo = ResponseRepository(config); repo.list(survey_id, ...)
# ============================================================================

"""
Response Repository - PostGIS Direct Access

Each response is stored as its full JSON document (doc jsonb) plus the
columns used for filtering and ordering:

    seq        bigserial store sequence
    id         response id (UUID string)
    survey     owning survey
    parcel_id  parcel the response is about
    created    insertion timestamp
    centroid   geometry(Point, 4326) from geo_info.centroid

Ordering for every listing is (created, seq) in the requested direction,
and paging is LIMIT/OFFSET over that order, so consecutive pages never
overlap or skip a record.

The bounding-box filter is strict on all four edges: a centroid exactly
on an edge is excluded, and responses without a centroid never match.

Date: 18 OCT 2026
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from psycopg import sql
from psycopg.types.json import Jsonb

from geoquery.errors import IntegrityWarning
from geoquery.models import BoundingBox, SortOrder
from infrastructure.postgresql import PostgreSQLRepository

from .config import ResponsesConfig, get_responses_config

logger = logging.getLogger(__name__)


def isoformat_utc(value: datetime) -> str:
    """ISO-8601 UTC timestamp with microseconds and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


class ResponseRepository(PostgreSQLRepository):
    """
    Survey response storage.

    Args:
        config: Responses configuration (singleton if not provided)
        connection_string: Explicit connection string (tests, scripts)
        on_integrity_warning: Called with an IntegrityWarning whenever a
            response id is found more than once within a survey
    """

    def __init__(
        self,
        config: Optional[ResponsesConfig] = None,
        connection_string: Optional[str] = None,
        on_integrity_warning: Optional[Callable[[IntegrityWarning], None]] = None
    ):
        self.config = config or get_responses_config()
        super().__init__(
            connection_string=connection_string,
            schema_name=self.config.responses_schema,
            statement_timeout_seconds=self.config.query_timeout_seconds
        )
        self.on_integrity_warning = on_integrity_warning
        self.integrity_warnings = 0
        self._counter_lock = threading.Lock()

    # ========================================================================
    # READS
    # ========================================================================

    def list(
        self,
        survey_id: str,
        parcel_id: Optional[str] = None,
        bbox: Optional[BoundingBox] = None,
        start_index: int = 0,
        count: Optional[int] = None,
        sort: SortOrder = SortOrder.DESC
    ) -> List[Dict[str, Any]]:
        """
        Responses of a survey, ordered by (created, seq).

        Args:
            survey_id: Owning survey
            parcel_id: Only responses about this parcel
            bbox: Only responses whose centroid lies strictly inside
            start_index: Number of ordered records to skip
            count: Page size (None = all remaining)
            sort: asc or desc by creation

        Returns:
            Response records
        """
        query = self._build_list_query(survey_id, parcel_id, bbox, start_index, count, sort)

        with self._get_cursor() as cur:
            cur.execute(query['sql'], query['params'])
            rows = cur.fetchall()

        records = [self._row_to_record(row) for row in rows]
        logger.debug(
            f"Listed {len(records)} responses for survey '{survey_id}' "
            f"(parcel={parcel_id}, bbox={bbox.as_list() if bbox else None}, "
            f"start={start_index}, count={count}, sort={sort.value})"
        )
        return records

    def list_by_parcel(self, survey_id: str, parcel_id: str, **kwargs) -> List[Dict[str, Any]]:
        """Responses about one parcel; accepts the paging arguments of list()."""
        return self.list(survey_id, parcel_id=parcel_id, **kwargs)

    def get_one(self, survey_id: str, response_id: str) -> Optional[Dict[str, Any]]:
        """
        A single response, or None.

        If the id occurs more than once in the survey, the first in store
        order is returned and an IntegrityWarning is raised to the hook.
        """
        query = sql.SQL("""
            SELECT seq, id, survey, created, doc
            FROM {schema}.{table}
            WHERE survey = %s AND id = %s
            ORDER BY seq
        """).format(
            schema=sql.Identifier(self.config.responses_schema),
            table=sql.Identifier(self.config.responses_table)
        )

        with self._get_cursor() as cur:
            cur.execute(query, (survey_id, response_id))
            rows = cur.fetchall()

        if not rows:
            return None

        if len(rows) > 1:
            self._report_duplicates(survey_id, response_id, len(rows))

        return self._row_to_record(rows[0])

    # ========================================================================
    # WRITES
    # ========================================================================

    def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Persist one prepared record on its own connection and commit.

        The record must already carry id, survey and created (ISO-8601).
        geo_info.centroid, when present, is [lon, lat].

        Returns:
            The record as stored
        """
        centroid = (record.get("geo_info") or {}).get("centroid")
        parcel_id = record.get("parcel_id")
        if parcel_id is None:
            parcel_id = (record.get("geo_info") or {}).get("parcel_id")

        if centroid:
            centroid_expr = sql.SQL("ST_SetSRID(ST_MakePoint(%s, %s), 4326)")
            centroid_params: Tuple[Any, ...] = (float(centroid[0]), float(centroid[1]))
        else:
            centroid_expr = sql.SQL("NULL")
            centroid_params = ()

        query = sql.SQL("""
            INSERT INTO {schema}.{table} (id, survey, parcel_id, created, centroid, doc)
            VALUES (%s, %s, %s, %s::timestamptz, {centroid}, %s)
        """).format(
            schema=sql.Identifier(self.config.responses_schema),
            table=sql.Identifier(self.config.responses_table),
            centroid=centroid_expr
        )
        params = (
            (record["id"], record["survey"], _text_or_none(parcel_id), record["created"])
            + centroid_params
            + (Jsonb(record),)
        )

        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
            conn.commit()

        logger.debug(f"Inserted response '{record['id']}' into survey '{record['survey']}'")
        return record

    def remove(self, survey_id: str) -> int:
        """Delete every response of a survey. Returns the number removed."""
        query = sql.SQL("DELETE FROM {schema}.{table} WHERE survey = %s").format(
            schema=sql.Identifier(self.config.responses_schema),
            table=sql.Identifier(self.config.responses_table)
        )
        removed = self._execute_query(query, (survey_id,))
        logger.warning(f"Deleted {removed} responses from survey '{survey_id}'")
        return removed

    def remove_one(self, survey_id: str, response_id: str) -> int:
        """Delete one response (every copy of its id). Returns the number removed."""
        query = sql.SQL("DELETE FROM {schema}.{table} WHERE survey = %s AND id = %s").format(
            schema=sql.Identifier(self.config.responses_schema),
            table=sql.Identifier(self.config.responses_table)
        )
        removed = self._execute_query(query, (survey_id, response_id))
        logger.info(f"Deleted {removed} copies of response '{response_id}' from survey '{survey_id}'")
        return removed

    # ========================================================================
    # QUERY BUILDING (SQL COMPOSITION)
    # ========================================================================

    def _build_list_query(
        self,
        survey_id: str,
        parcel_id: Optional[str],
        bbox: Optional[BoundingBox],
        start_index: int,
        count: Optional[int],
        sort: SortOrder
    ) -> Dict[str, Any]:
        """
        Returns:
            Dict with 'sql' (sql.Composed) and 'params' (tuple)
        """
        conditions = [sql.SQL("survey = %s")]
        params: List[Any] = [survey_id]

        if parcel_id is not None:
            conditions.append(sql.SQL("parcel_id = %s"))
            params.append(parcel_id)

        if bbox is not None:
            conditions.append(sql.SQL(
                "centroid IS NOT NULL"
                " AND ST_X(centroid) > %s AND ST_X(centroid) < %s"
                " AND ST_Y(centroid) > %s AND ST_Y(centroid) < %s"
            ))
            params.extend([bbox.min_lon, bbox.max_lon, bbox.min_lat, bbox.max_lat])

        direction = sql.SQL("ASC") if sort == SortOrder.ASC else sql.SQL("DESC")

        # LIMIT NULL returns every remaining row
        query = sql.SQL("""
            SELECT seq, id, survey, created, doc
            FROM {schema}.{table}
            WHERE {where_clause}
            ORDER BY created {direction}, seq {direction}
            LIMIT %s OFFSET %s
        """).format(
            schema=sql.Identifier(self.config.responses_schema),
            table=sql.Identifier(self.config.responses_table),
            where_clause=sql.SQL(" AND ").join(conditions),
            direction=direction
        )
        params.extend([count, start_index])

        return {'sql': query, 'params': tuple(params)}

    # ========================================================================
    # CONVERSION / INTEGRITY
    # ========================================================================

    @staticmethod
    def _row_to_record(row: Dict[str, Any]) -> Dict[str, Any]:
        record = dict(row.get("doc") or {})
        record["id"] = row["id"]
        record["survey"] = row["survey"]
        created = row.get("created")
        if isinstance(created, datetime):
            record["created"] = isoformat_utc(created)
        elif created is not None:
            record["created"] = created
        return record

    def _report_duplicates(self, survey_id: str, response_id: str, occurrences: int) -> None:
        with self._counter_lock:
            self.integrity_warnings += 1

        warning = IntegrityWarning(
            f"Response '{response_id}' occurs {occurrences} times in survey '{survey_id}'; "
            f"returning the first",
            details={
                'survey_id': survey_id,
                'response_id': response_id,
                'occurrences': occurrences
            }
        )
        logger.warning(warning.message, extra={'custom_dimensions': warning.details})
        if self.on_integrity_warning:
            self.on_integrity_warning(warning)


def _text_or_none(value: Any) -> Optional[str]:
    return None if value is None else str(value)

# ============================================================================
# MODULE CONTEXT - FEATURE REPOSITORY
# ============================================================================
# STATUS: Repository - PostGIS reference feature access (read-only)
# PURPOSE: Bounding-box intersection and point containment lookups
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: FeatureRepository, STANDARD_PROPERTIES
# DEPENDENCIES: psycopg, psycopg.sql, infrastructure.postgresql
# SOURCE: PostgreSQL/PostGIS reference feature table (configurable schema/table)
# VALIDATION: SQL injection prevention via psycopg.sql composition
# PATTERNS: Repository Pattern, Query Builder, SQL Composition
# ENTRY_POINTS: repo = FeatureRepository(config); repo.query_by_bounding_box(bbox)
# ============================================================================

"""
Feature Repository - PostGIS Direct Access

Two lookups over the reference feature table:
- query_by_bounding_box: ST_Intersects() against ST_MakeEnvelope(..., 4326)
- query_by_point: ST_Contains() over Polygon/MultiPolygon features only

Both accept exact-match filters on properties->>'type' and
properties->>'source', apply no row limit and order by feature id so the
same query always yields the same sequence (and the same ETag).

Safety:
- Dynamic identifiers via sql.Identifier()
- Values via parameterized queries (%s placeholders)

Date: 18 OCT 2026
"""

import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from psycopg import sql

from geoquery.errors import IntegrityWarning
from geoquery.models import BoundingBox, Point
from infrastructure.postgresql import PostgreSQLRepository

from .config import FeaturesConfig, get_features_config

logger = logging.getLogger(__name__)

STANDARD_PROPERTIES = ("source", "type", "shortName", "longName", "info")


class FeatureRepository(PostgreSQLRepository):
    """
    Read-only access to the reference feature table.

    Features missing any of STANDARD_PROPERTIES are still returned; each
    one is logged and counted in `integrity_warnings`.
    """

    def __init__(
        self,
        config: Optional[FeaturesConfig] = None,
        connection_string: Optional[str] = None,
        on_integrity_warning: Optional[Callable[[IntegrityWarning], None]] = None
    ):
        self.config = config or get_features_config()
        super().__init__(
            connection_string=connection_string,
            schema_name=self.config.features_schema,
            statement_timeout_seconds=self.config.query_timeout_seconds
        )
        self.on_integrity_warning = on_integrity_warning
        self.integrity_warnings = 0
        self._counter_lock = threading.Lock()

    # ========================================================================
    # LOOKUPS
    # ========================================================================

    def query_by_bounding_box(
        self,
        bbox: BoundingBox,
        type_filter: Optional[str] = None,
        source_filter: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Features whose geometry intersects the bounding box.

        Args:
            bbox: Validated bounding box (EPSG:4326)
            type_filter: Exact match on properties.type
            source_filter: Exact match on properties.source

        Returns:
            GeoJSON feature dicts ordered by id
        """
        spatial = sql.SQL(
            "ST_Intersects({geom_col}, ST_MakeEnvelope(%s, %s, %s, %s, 4326))"
        ).format(geom_col=sql.Identifier(self.config.geometry_column))
        query = self._build_feature_query(spatial, bbox.as_list(), type_filter, source_filter)

        features = self._run(query)
        logger.info(f"Bounding box query {bbox.as_list()} returned {len(features)} features")
        return features

    def query_by_point(
        self,
        point: Point,
        type_filter: Optional[str] = None,
        source_filter: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Polygon and MultiPolygon features containing the point.

        Returns:
            GeoJSON feature dicts ordered by id
        """
        spatial = sql.SQL(
            "ST_GeometryType({geom_col}) IN ('ST_Polygon', 'ST_MultiPolygon') "
            "AND ST_Contains({geom_col}, ST_SetSRID(ST_MakePoint(%s, %s), 4326))"
        ).format(geom_col=sql.Identifier(self.config.geometry_column))
        query = self._build_feature_query(spatial, [point.lon, point.lat], type_filter, source_filter)

        features = self._run(query)
        logger.info(f"Point query ({point.lon}, {point.lat}) returned {len(features)} features")
        return features

    # ========================================================================
    # QUERY BUILDING (SQL COMPOSITION)
    # ========================================================================

    def _build_feature_query(
        self,
        spatial_condition: sql.Composed,
        spatial_params: List[Any],
        type_filter: Optional[str],
        source_filter: Optional[str]
    ) -> Dict[str, Any]:
        """
        Returns:
            Dict with 'sql' (sql.Composed) and 'params' (tuple)
        """
        where_clause, where_params = self._build_where_clause(
            spatial_condition, spatial_params, type_filter, source_filter
        )

        query = sql.SQL("""
            SELECT
                id,
                properties,
                ST_AsGeoJSON({geom_col}, %s) as geometry
            FROM {schema}.{table}
            WHERE {where_clause}
            ORDER BY id
        """).format(
            geom_col=sql.Identifier(self.config.geometry_column),
            schema=sql.Identifier(self.config.features_schema),
            table=sql.Identifier(self.config.features_table),
            where_clause=where_clause
        )

        params = (self.config.precision,) + tuple(where_params)
        return {'sql': query, 'params': params}

    def _build_where_clause(
        self,
        spatial_condition: sql.Composed,
        spatial_params: List[Any],
        type_filter: Optional[str],
        source_filter: Optional[str]
    ) -> Tuple[sql.Composed, List[Any]]:
        conditions = [spatial_condition]
        params = list(spatial_params)

        if type_filter is not None:
            conditions.append(sql.SQL("properties->>'type' = %s"))
            params.append(type_filter)

        if source_filter is not None:
            conditions.append(sql.SQL("properties->>'source' = %s"))
            params.append(source_filter)

        return sql.SQL(" AND ").join(conditions), params

    # ========================================================================
    # EXECUTION / CONVERSION
    # ========================================================================

    def _run(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._get_cursor() as cur:
            cur.execute(query['sql'], query['params'])
            rows = cur.fetchall()
        return self._convert_to_geojson_features(rows)

    def _convert_to_geojson_features(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Convert database rows to GeoJSON feature dicts.

        Rows carry 'geometry' as a GeoJSON string from ST_AsGeoJSON and
        'properties' as the decoded jsonb column.
        """
        features = []
        for row in rows:
            geom_json_str = row.get('geometry')
            properties = row.get('properties') or {}
            if isinstance(properties, str):
                properties = json.loads(properties)

            feature = {
                'type': 'Feature',
                'id': row.get('id'),
                'geometry': json.loads(geom_json_str) if geom_json_str else None,
                'properties': properties
            }
            self._check_integrity(feature)
            features.append(feature)

        return features

    def _check_integrity(self, feature: Dict[str, Any]) -> None:
        missing = [name for name in STANDARD_PROPERTIES if name not in feature['properties']]
        if not missing:
            return

        with self._counter_lock:
            self.integrity_warnings += 1

        warning = IntegrityWarning(
            f"Feature '{feature['id']}' is missing standard properties: {', '.join(missing)}",
            details={'feature_id': feature['id'], 'missing': missing}
        )
        logger.warning(warning.message, extra={'custom_dimensions': warning.details})
        if self.on_integrity_warning:
            self.on_integrity_warning(warning)
